"""Verification email bodies."""

from dataclasses import dataclass
from datetime import datetime
from html import escape

BRAND = "LAMIKAS"
TAGLINE = "Africa's most intuitive property management platform"

_HTML = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Verify Your {brand} Account</title>
    <style>
      body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6; color: #333; margin: 0; padding: 0; background-color: #f5f5f5; }}
      .container {{ max-width: 600px; margin: 0 auto; background-color: #ffffff; border-radius: 8px; overflow: hidden; }}
      .header {{ background: linear-gradient(90deg, #1a365d 0%, #38b2ac 100%); color: white; padding: 30px; text-align: center; }}
      .logo {{ font-size: 28px; font-weight: 800; margin-bottom: 10px; }}
      .content {{ padding: 40px; }}
      .greeting {{ font-size: 24px; font-weight: 600; margin-bottom: 20px; color: #1a365d; }}
      .message {{ font-size: 16px; color: #4a5568; margin-bottom: 30px; }}
      .code-container {{ background-color: #bee3f8; border-radius: 12px; padding: 25px; text-align: center; margin: 30px 0; border: 2px solid #1a365d; }}
      .code {{ font-size: 42px; font-weight: 800; letter-spacing: 10px; color: #1a365d; margin: 0; font-family: monospace; }}
      .expiration {{ background-color: #fff5f5; border-radius: 8px; padding: 15px; margin: 20px 0; text-align: center; border-left: 4px solid #fc8181; }}
      .expiration-time {{ font-size: 18px; font-weight: 700; color: #c53030; }}
      .note {{ font-size: 14px; color: #718096; text-align: center; margin-top: 20px; }}
      .step {{ margin-bottom: 15px; padding-bottom: 15px; border-bottom: 1px solid #e2e8f0; }}
      .warning {{ background-color: #fff5f5; border-left: 4px solid #fc8181; padding: 15px; margin: 20px 0; font-size: 14px; }}
      .footer {{ background-color: #f7fafc; padding: 25px; text-align: center; border-top: 1px solid #e2e8f0; color: #718096; font-size: 14px; }}
    </style>
  </head>
  <body>
    <div class="container">
      <div class="header">
        <div class="logo">{brand}</div>
        <div style="font-size: 18px; opacity: 0.9;">Property Management Platform</div>
      </div>
      <div class="content">
        <div class="greeting">Hi {name},</div>
        <div class="message">
          Thank you for signing up for {brand}! To complete your registration and start managing your properties, please verify your email address using the code below.
        </div>
        <div class="code-container">
          <p style="margin-top: 0; font-weight: 600; color: #2d3748;">Your verification code:</p>
          <h1 class="code">{code}</h1>
        </div>
        <div class="expiration">
          <div class="expiration-time">This code expires in {ttl} minutes</div>
          <div style="font-size: 14px; margin-top: 5px;">Generated at {generated_at} &bull; Expires at {expires_at}</div>
        </div>
        <div class="note">Enter this code in the verification screen on {brand} to complete your registration.</div>
        <div style="margin: 30px 0;">
          <div class="step"><strong>1. Go back to {brand}</strong><br>Return to the verification screen in your browser</div>
          <div class="step"><strong>2. Enter the code</strong><br>Type the 6-digit code above into the verification fields</div>
          <div class="step"><strong>3. Complete registration</strong><br>Click verify and continue with the rest of your setup</div>
        </div>
        <div class="warning">
          <strong>Security notice:</strong> Never share this code with anyone. {brand} will never ask for your verification code via phone, email, or text message.
        </div>
        <div class="note">If you didn't create a {brand} account, you can safely ignore this email.</div>
      </div>
      <div class="footer">
        <p>&copy; {year} {brand}. All rights reserved.</p>
        <p>{tagline}</p>
        <p style="margin-top: 15px; font-size: 12px; color: #a0aec0;">
          This email was sent to {email}.<br>
          Need help? Contact our support team at {support}
        </p>
      </div>
    </div>
  </body>
</html>
"""

_TEXT = """Verify Your {brand} Account

Hi {name},

Thank you for signing up for {brand}! To complete your registration and start managing your properties, please verify your email address using the code below.

Your verification code: {code}

Code Expiration
This code expires in {ttl} minutes
Generated at {generated_at}
Expires at {expires_at}

Enter this code in the verification screen on {brand} to complete your registration.

Steps to verify:
1. Go back to {brand}
2. Enter the 6-digit code above
3. Complete registration

Security notice: Never share this code with anyone. {brand} will never ask for your verification code via phone, email, or text message.

If you didn't create a {brand} account, you can safely ignore this email.

---
(c) {year} {brand}. All rights reserved.
{tagline}

This email was sent to {email}.
Need help? Contact our support team at {support}
"""


def _clock(moment: datetime) -> str:
    return moment.strftime("%H:%M UTC")


@dataclass(frozen=True)
class VerificationEmailContent:
    subject: str
    html: str
    text: str


def display_name(first_name: object, last_name: object) -> str:
    """Full name when both parts are given, else the first name, else "User"."""
    first = first_name if isinstance(first_name, str) and first_name else None
    last = last_name if isinstance(last_name, str) and last_name else None
    if first and last:
        return f"{first} {last}"
    return first or "User"


def render_verification_email(
    *,
    email: str,
    code: str,
    name: str,
    generated_at: datetime,
    expires_at: datetime,
    ttl_minutes: int,
    support_email: str,
) -> VerificationEmailContent:
    values = {
        "brand": BRAND,
        "tagline": TAGLINE,
        "code": code,
        "ttl": ttl_minutes,
        "generated_at": _clock(generated_at),
        "expires_at": _clock(expires_at),
        "year": generated_at.year,
    }
    html_values = dict(values, name=escape(name), email=escape(email), support=escape(support_email))
    text_values = dict(values, name=name, email=email, support=support_email)
    return VerificationEmailContent(
        subject=f"Verify your {BRAND} account - Your code: {code}",
        html=_HTML.format(**html_values),
        text=_TEXT.format(**text_values),
    )
