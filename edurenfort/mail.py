import logging

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from . import config

logger = logging.getLogger(__name__)

conf = None
if config.MAIL_USERNAME and config.MAIL_PASSWORD and config.MAIL_FROM:
    conf = ConnectionConfig(
        MAIL_USERNAME=config.MAIL_USERNAME,
        MAIL_PASSWORD=config.MAIL_PASSWORD,
        MAIL_FROM=config.MAIL_FROM,
        MAIL_PORT=config.MAIL_PORT,
        MAIL_SERVER=config.MAIL_SERVER,
        MAIL_STARTTLS=config.MAIL_STARTTLS,
        MAIL_SSL_TLS=config.MAIL_SSL_TLS,
    )


def is_configured() -> bool:
    return conf is not None


async def send_mail(recipient: str, subject: str, body: str):
    message = MessageSchema(
        subject=subject,
        recipients=[recipient],
        body=body,
        subtype=MessageType.plain,
    )
    fm = FastMail(conf)
    await fm.send_message(message)


async def send_otp_email(recipient: str, otp: str):
    await send_mail(
        recipient,
        f"{config.APP_NAME} - Code de réinitialisation",
        f"Votre code est {otp}. Il expire dans {config.OTP_EXPIRE_MINUTES} minutes.",
    )


async def send_teacher_decision(recipient: str, first_name: str, approved: bool):
    """Tell a teacher the outcome of their application. Never raises."""
    if not is_configured():
        logger.info("Mail not configured, skipping decision mail to %s", recipient)
        return
    if approved:
        body = (
            f"Bonjour {first_name or ''},\n\n"
            "Votre compte enseignant a été approuvé. "
            "Vous pouvez maintenant publier des cours et programmer des lives."
        )
    else:
        body = (
            f"Bonjour {first_name or ''},\n\n"
            "Votre demande de compte enseignant n'a pas été retenue."
        )
    try:
        await send_mail(recipient, f"{config.APP_NAME} - Votre compte enseignant", body)
    except Exception:
        logger.exception("Could not send teacher decision mail to %s", recipient)
