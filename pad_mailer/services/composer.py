from __future__ import annotations

import base64
import mimetypes
from collections.abc import Sequence
from dataclasses import dataclass
from email.message import EmailMessage

from ..models.attachment import Attachment
from ..models.delivery import Period, RowFields

"""Email composer.

Builds one message per row: a subject and plain text body interpolated from
the row identity and the reporting period, an HTML alternative that only swaps
newlines for <br>, and the resolved attachments. Pure transform, no I/O.
"""

__all__ = [
    "ComposedMessage",
    "compose",
    "SUBJECT_TEMPLATE",
    "BODY_TEMPLATE",
]

SUBJECT_TEMPLATE = "Healthcare - PAD de {nome} {year}/{month}"
BODY_TEMPLATE = (
    "Olá,\n\n"
    "Segue em anexo os documentos de {nome}.\n\n"
    "COD: {cod}\n"
    "PAD: {pad}\n"
    "Período: {month}/{year}\n\n"
    "Atenciosamente,\n"
    "Equipe Health Care"
)


@dataclass(frozen=True)
class ComposedMessage:
    to: str
    subject: str
    text: str
    html: str
    attachments: tuple[Attachment, ...] = ()
    sender: str | None = None

    def to_email_message(self) -> EmailMessage:
        """Render as multipart/mixed (text + html alternative + attachments)."""
        msg = EmailMessage()
        if self.sender:
            msg["From"] = self.sender
        msg["To"] = self.to
        msg["Subject"] = self.subject
        msg.set_content(self.text)
        msg.add_alternative(self.html, subtype="html")
        for att in self.attachments:
            mime_type, _ = mimetypes.guess_type(att.filename)
            maintype, subtype = (mime_type or "application/octet-stream").split("/", 1)
            msg.add_attachment(att.content, maintype=maintype, subtype=subtype, filename=att.filename)
        return msg

    def to_raw(self) -> str:
        """base64url encoded RFC 5322 bytes, the form Gmail's send API takes."""
        return base64.urlsafe_b64encode(self.to_email_message().as_bytes()).decode("ascii")


def compose(
    to_address: str,
    fields: RowFields,
    period: Period,
    attachments: Sequence[Attachment],
    sender: str | None = None,
) -> ComposedMessage:
    params = {
        "nome": fields.nome,
        "cod": fields.cod,
        "pad": fields.pad,
        "year": period.year,
        "month": period.month,
    }
    text = BODY_TEMPLATE.format(**params)
    return ComposedMessage(
        to=to_address,
        subject=SUBJECT_TEMPLATE.format(**params),
        text=text,
        html=text.replace("\n", "<br>"),
        attachments=tuple(attachments),
        sender=sender,
    )
