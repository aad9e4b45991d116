from typing import List

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema
from settings import (
    MAIL_USERNAME,
    MAIL_PASSWORD,
    MAIL_FROM,
    MAIL_PORT,
    MAIL_SERVER,
    MAIL_FROM_NAME,
    MAIL_TLS,
    MAIL_SSL,
    USE_CREDENTIALS,
)


conf_static = ConnectionConfig(
    MAIL_USERNAME=MAIL_USERNAME,
    MAIL_PASSWORD=MAIL_PASSWORD,
    MAIL_FROM=MAIL_FROM,
    MAIL_PORT=MAIL_PORT,
    MAIL_SERVER=MAIL_SERVER,
    MAIL_FROM_NAME=MAIL_FROM_NAME,
    MAIL_STARTTLS=MAIL_TLS,
    MAIL_SSL_TLS=MAIL_SSL,
    USE_CREDENTIALS=USE_CREDENTIALS,
    TEMPLATE_FOLDER="./core/mail_templates/",
)


async def send_enrollment_confirmation_email(
    recipient: str, name: str, activities: List[dict]
):
    """
    Send one confirmation listing every activity of an admitted batch \n
    each item of ``activities`` holds title, start, location, seat_number and ticket_token
    """
    fm = FastMail(conf_static)
    await fm.send_message(
        message=MessageSchema(
            subject="Enrollment confirmed",
            recipients=[recipient],
            template_body={"name": name, "activities": activities},
            subtype="html",
        ),
        template_name="enrollment_confirmation.html",
    )
