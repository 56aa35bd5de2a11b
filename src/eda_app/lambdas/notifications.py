"""
SES message construction shared by the mailer functions.

Only the standard library is used here: these modules are zipped into the
Lambda deployment package, where boto3 is the sole third-party library.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

SENDER_NAME = "The Photo Album"
CHARSET = "UTF-8"


class ConfigurationError(RuntimeError):
    """Raised when a mailer starts without its SES settings."""


@dataclass(frozen=True)
class SesSettings:
    """Sender, recipient and region for outgoing mail."""

    email_from: str
    email_to: str
    region: str


@dataclass(frozen=True)
class ContactDetails:
    """Who a notification claims to be from and what it says."""

    name: str
    email: str
    message: str


def load_ses_settings(environ: Optional[Mapping[str, str]] = None) -> SesSettings:
    """
    Read SES settings from the function environment.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        SesSettings with all three values populated.

    Raises:
        ConfigurationError: If any of the variables is missing or empty.
    """
    environ = os.environ if environ is None else environ

    email_from = environ.get("SES_EMAIL_FROM", "")
    email_to = environ.get("SES_EMAIL_TO", "")
    region = environ.get("SES_REGION", "")

    if not email_to or not email_from or not region:
        raise ConfigurationError(
            "Please add the SES_EMAIL_TO, SES_EMAIL_FROM, and SES_REGION "
            "environment variables to the function configuration"
        )

    return SesSettings(email_from=email_from, email_to=email_to, region=region)


def html_content(details: ContactDetails) -> str:
    return f"""
    <html>
      <body>
        <h2>Sent from: </h2>
        <ul>
          <li style="font-size:18px">👤 <b>{details.name}</b></li>
          <li style="font-size:18px">✉️ <b>{details.email}</b></li>
        </ul>
        <p style="font-size:18px">{details.message}</p>
      </body>
    </html>
  """


def text_content(details: ContactDetails) -> str:
    return f"""
    Received a new message. 📬
    Sent from:
        👤 {details.name}
        ✉️ {details.email}
    {details.message}
  """


def send_email_params(
    details: ContactDetails,
    settings: SesSettings,
    subject: str,
) -> Dict[str, Any]:
    """
    Build the keyword arguments for ``ses_client.send_email``.

    Args:
        details: Contact details rendered into both bodies
        settings: SES sender and recipient
        subject: Subject line

    Returns:
        Dictionary suitable for ``send_email(**params)``.
    """
    return {
        "Destination": {
            "ToAddresses": [settings.email_to],
        },
        "Message": {
            "Body": {
                "Html": {"Charset": CHARSET, "Data": html_content(details)},
                "Text": {"Charset": CHARSET, "Data": text_content(details)},
            },
            "Subject": {"Charset": CHARSET, "Data": subject},
        },
        "Source": settings.email_from,
    }
