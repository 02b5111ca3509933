"""
dispatcher.py - Requests outbound calls from Twilio.

Each call is answered by inline TwiML that hands the line to the voice AI
assistant; Twilio then posts call progress to /callStatus.
"""

import logging
from typing import Optional
from xml.sax.saxutils import quoteattr

import requests

import config
from errors import DispatchFailure

logger = logging.getLogger(__name__)

STATUS_CALLBACK_EVENTS = ["initiated", "ringing", "answered", "completed"]


def build_twiml(greeting: str) -> str:
    return (
        "<Response>"
        "<Connect>"
        f"<Assistant id={quoteattr(config.TWILIO_ASSISTANT_SID)}"
        f" welcomeGreeting={quoteattr(greeting)}"
        f" voice={quoteattr(config.TWILIO_VOICE)}/>"
        "</Connect>"
        "</Response>"
    )


def place_call(
    to_number: str,
    greeting: str,
    from_number: Optional[str] = None,
    status_callback_url: Optional[str] = None,
) -> dict:
    """Ask Twilio to dial ``to_number``; raises DispatchFailure if the request is refused."""
    from_number = from_number or config.TWILIO_FROM_NUMBER
    status_callback_url = status_callback_url or f"{config.SERVER_BASE_URL}/callStatus"

    if not (config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN and config.TWILIO_ASSISTANT_SID and from_number):
        logger.warning(
            "Missing TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_ASSISTANT_SID or TWILIO_FROM_NUMBER"
        )

    url = f"{config.TWILIO_API_URL}/2010-04-01/Accounts/{config.TWILIO_ACCOUNT_SID}/Calls.json"
    payload = {
        "To": to_number,
        "From": from_number,
        "Twiml": build_twiml(greeting),
        "StatusCallback": status_callback_url,
        "StatusCallbackMethod": "POST",
        "StatusCallbackEvent": STATUS_CALLBACK_EVENTS,
    }

    try:
        resp = requests.post(
            url,
            data=payload,
            auth=(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN),
            timeout=config.DISPATCH_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise DispatchFailure(f"Call request to {to_number} failed: {e}") from e

    if resp.status_code not in (200, 201):
        raise DispatchFailure(f"Twilio answered {resp.status_code} for {to_number}: {resp.text}")

    try:
        data = resp.json()
    except ValueError as e:
        raise DispatchFailure(f"Unreadable Twilio response for {to_number}: {resp.text[:200]}") from e
    logger.info("Call queued to %s (sid=%s, status=%s)", to_number, data.get("sid"), data.get("status"))
    return data
