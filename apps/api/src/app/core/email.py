"""
Email Service using Resend

Handles sending emails for the student registration flow.
"""

import asyncio
import logging
import os
from html import escape

import resend

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = os.getenv("RESEND_API_KEY")

# Configurations
EMAIL_FROM = os.getenv("EMAIL_FROM", "Student Portal <noreply@studentportal.dev>")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

CREDENTIALS_SUBJECT = "Your Student Portal Credentials"


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was handed to Resend successfully. False when sending
        failed or no API key is configured (the body is never logged, since
        it may carry credentials).
    """
    if not resend.api_key:
        logger.warning(f"RESEND_API_KEY not set - email to {to_email} not sent | SUBJECT: {subject}")
        return False

    try:
        params: resend.Emails.SendParams = {
            "from": EMAIL_FROM,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_student_credentials(
    to_email: str,
    full_name: str,
    student_id: str,
    password: str,
) -> bool:
    """Send a newly registered student their sign-in credentials."""
    # Escape user inputs to prevent XSS
    safe_full_name = escape(full_name)
    safe_student_id = escape(student_id)
    safe_email = escape(to_email)
    safe_password = escape(password)

    login_url = f"{FRONTEND_URL}/login"
    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .header {{ color: #1a365d; margin-bottom: 24px; }}
            .credentials {{ background-color: #f3f4f6; padding: 16px 20px; border-radius: 8px; margin: 24px 0; }}
            .credentials code {{ font-size: 16px; color: #111827; }}
            .button {{ display: inline-block; background-color: #1a365d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Welcome to the Student Portal</h1>

            <p>Hello {safe_full_name},</p>

            <p>Your registration is complete. Use the credentials below to sign in:</p>

            <div class="credentials">
                <p><strong>Student ID:</strong> <code>{safe_student_id}</code></p>
                <p><strong>Email:</strong> <code>{safe_email}</code></p>
                <p><strong>Temporary password:</strong> <code>{safe_password}</code></p>
            </div>

            <a href="{login_url}" class="button">Sign In</a>

            <p><strong>You will be asked to change this password when you first sign in.</strong></p>

            <div class="footer">
                <p>If you did not register, please contact the school office.</p>
                <p>Student Portal</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=CREDENTIALS_SUBJECT,
        html_content=html_content,
    )
