"""Email content for contract lifecycle notifications.

Only the content is produced here (subject, HTML, plaintext, recipient).
Delivery belongs to whatever NotificationDispatcher the app is wired with.
"""

from __future__ import annotations

import html
from typing import List, Optional, Tuple

from src.contract_lifecycle.models import ContractRecord, SignerType
from src.contract_lifecycle.renderer import format_long_date, format_money
from src.integrations.contracts.interfaces import NotificationEvent, NotificationMessage

_STYLE = (
    "body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6; color: #333; "
    "max-width: 600px; margin: 0 auto; padding: 20px; }"
    ".header { background: #1E68C6; color: white; padding: 30px 20px; text-align: center; }"
    ".contract-info { background: #f8fafc; padding: 20px; margin: 20px 0; border-left: 4px solid #1E68C6; }"
    ".button { display: inline-block; padding: 16px 32px; background: #1E68C6; color: white !important; "
    "text-decoration: none; border-radius: 8px; font-weight: 600; }"
    ".footer { font-size: 12px; color: #6b7280; margin-top: 20px; }"
)


def recipient_for(contract: ContractRecord, signer_type: SignerType) -> Tuple[Optional[str], str]:
    """(email, display name) for a role. The client signer override wins over the deal contact."""
    if signer_type == SignerType.CLIENT:
        override = contract.metadata.get("client_signer") or {}
        email = override.get("email") or contract.client.email
        name = override.get("name") or contract.client.name
        return email, name
    if signer_type == SignerType.SPEAKER:
        return contract.speaker.email, contract.speaker.name or "Speaker"
    return None, "Administrator"


def _details(contract: ContractRecord) -> List[Tuple[str, str]]:
    return [
        ("Contract #", contract.contract_number),
        ("Event", contract.event.title),
        ("Date", format_long_date(contract.event.date)),
        ("Location", contract.event.location),
        ("Fee", f"{contract.currency} {format_money(contract.fee_amount)}"),
    ]


def _wrap_html(title: str, greeting_name: str, paragraphs: List[str], details: List[Tuple[str, str]], link: Optional[str], link_label: str, company_name: str) -> str:
    rows = "".join(
        f'<p style="margin: 5px 0;"><strong>{html.escape(label)}:</strong> {html.escape(value)}</p>'
        for label, value in details
    )
    body = "".join(f"<p>{html.escape(p)}</p>" for p in paragraphs)
    button = ""
    if link:
        button = f'<p style="text-align: center;"><a href="{html.escape(link, quote=True)}" class="button">{html.escape(link_label)}</a></p>'
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="UTF-8">\n'
        f"<title>{html.escape(title)}</title>\n<style>{_STYLE}</style>\n</head>\n<body>\n"
        f'<div class="header"><h1 style="margin: 0; font-size: 24px;">{html.escape(title)}</h1></div>\n'
        f"<p>Dear {html.escape(greeting_name)},</p>\n"
        f"{body}\n"
        f'<div class="contract-info">{rows}</div>\n'
        f"{button}\n"
        f'<p class="footer">This message was sent by {html.escape(company_name)}. '
        "The link above is personal to you; please do not forward it.</p>\n"
        "</body>\n</html>\n"
    )


def _wrap_text(greeting_name: str, paragraphs: List[str], details: List[Tuple[str, str]], link: Optional[str], company_name: str) -> str:
    lines = [f"Dear {greeting_name},", ""]
    for p in paragraphs:
        lines.extend([p, ""])
    lines.extend(f"{label}: {value}" for label, value in details)
    if link:
        lines.extend(["", link])
    lines.extend(["", f"- {company_name}"])
    return "\n".join(lines) + "\n"


def build_signing_request(contract: ContractRecord, signer_type: SignerType, signing_link: str, company_name: str) -> Optional[NotificationMessage]:
    email, name = recipient_for(contract, signer_type)
    if not email:
        return None

    subject = f"Contract Signature Required - {contract.event.title}"
    paragraphs = [
        "You have been requested to review and digitally sign a contract for the following engagement.",
        f"This link expires on {format_long_date(contract.expires_at.date())}.",
    ]
    details = _details(contract)
    return NotificationMessage(
        event=NotificationEvent.SIGNATURE_REQUESTED,
        contract_id=contract.id,
        contract_number=contract.contract_number,
        recipient_email=email,
        recipient_name=name,
        subject=subject,
        html=_wrap_html("Contract Signature Required", name, paragraphs, details, signing_link, "Review & Sign Contract", company_name),
        text=_wrap_text(name, paragraphs, details, signing_link, company_name),
        metadata={"signer_type": signer_type.value},
    )


def build_executed_confirmation(contract: ContractRecord, signer_type: SignerType, view_link: str, company_name: str) -> Optional[NotificationMessage]:
    email, name = recipient_for(contract, signer_type)
    if not email:
        return None

    subject = f"Contract Fully Executed - {contract.contract_number}"
    paragraphs = [
        "All parties have signed. The agreement below is now fully executed.",
        "You can view the final agreement at any time using the link below.",
    ]
    details = _details(contract)
    return NotificationMessage(
        event=NotificationEvent.FULLY_EXECUTED,
        contract_id=contract.id,
        contract_number=contract.contract_number,
        recipient_email=email,
        recipient_name=name,
        subject=subject,
        html=_wrap_html("Contract Fully Executed", name, paragraphs, details, view_link, "View Contract", company_name),
        text=_wrap_text(name, paragraphs, details, view_link, company_name),
        metadata={"signer_type": signer_type.value},
    )


def build_cancellation_notice(contract: ContractRecord, signer_type: SignerType, company_name: str) -> Optional[NotificationMessage]:
    email, name = recipient_for(contract, signer_type)
    if not email:
        return None

    subject = f"Contract Cancelled - {contract.contract_number}"
    paragraphs = ["The contract for the engagement below has been cancelled and can no longer be signed."]
    details = _details(contract)
    return NotificationMessage(
        event=NotificationEvent.CANCELLED,
        contract_id=contract.id,
        contract_number=contract.contract_number,
        recipient_email=email,
        recipient_name=name,
        subject=subject,
        html=_wrap_html("Contract Cancelled", name, paragraphs, details, None, "", company_name),
        text=_wrap_text(name, paragraphs, details, None, company_name),
        metadata={"signer_type": signer_type.value},
    )
