"""
Email and task documents

Pure rendering: every method takes the submission, its money breakdown and the
orchestration context, and returns a Document. Nothing here reads the clock or
the environment, so rendering the same inputs twice gives identical output.

Markup documents escape every user-supplied value; task descriptions are plain
text and keep user text as typed.
"""

import html
from typing import List, Optional

from memorial_intake.config import BusinessProfile
from memorial_intake.models import (
    DepositPaymentEvent,
    Document,
    OrchestrationContext,
    Submission,
)
from memorial_intake.services.money import (
    PLACEHOLDER,
    MoneyBreakdown,
    addon_names,
    format_minor_units,
    format_money,
)

NOT_PROVIDED = "Not provided"


def esc(value) -> str:
    """Escape & < > " ' in user-supplied text."""
    return html.escape("" if value is None else str(value), quote=True)


def esc_multiline(value) -> str:
    text = "" if value is None else str(value)
    return esc(text.replace("\r\n", "\n")).replace("\n", "<br>")


def title_case_slug(value: str) -> str:
    """"memorial-repair" -> "Memorial Repair" """
    return " ".join(word[:1].upper() + word[1:] for word in value.replace("-", " ").split(" "))


def price_label(money: MoneyBreakdown) -> str:
    """"£2,481" or a dash when the quote carried no usable price."""
    if not money.price_parsed:
        return PLACEHOLDER
    return f"£{format_money(money.grand_total)}"


def price_lines(money: MoneyBreakdown) -> List[tuple]:
    """(label, amount) rows for the price breakdown, base first, total last."""
    if not money.price_parsed:
        return [("Total", PLACEHOLDER)]
    rows = [("Memorial & installation", f"£{format_money(money.base_amount)}")]
    for line in money.addon_lines:
        amount = f"£{format_money(line.amount)}" if line.amount is not None else "Included"
        rows.append((line.name, amount))
    rows.append(("Total", f"£{format_money(money.grand_total)}"))
    return rows


class DocumentRenderer:
    """Renders every document the intake pipeline sends, branded for one business."""

    def __init__(self, business: BusinessProfile):
        self.business = business

    # ==================== SUBJECTS ====================

    def business_subject(self, submission: Submission) -> str:
        if submission.is_quote:
            return f"New Quote Request — {submission.product_or_empty.name or 'Memorial'} — {submission.name}"
        return f"New Enquiry — {submission.name}"

    def customer_subject(self, submission: Submission) -> str:
        if submission.is_quote:
            return f"Your quote request — {submission.product_or_empty.name or 'Memorial'} — {self.business.name}"
        return f"We've received your enquiry — {self.business.name}"

    def task_title(self, submission: Submission) -> str:
        if submission.is_quote:
            return f"Quote Request — {submission.product_or_empty.name or 'Memorial'} — {submission.name}"
        return f"New Enquiry — {submission.name}"

    def deposit_customer_subject(self) -> str:
        return f"Deposit confirmed — {self.business.name}"

    def deposit_business_subject(self, event: DepositPaymentEvent) -> str:
        who = event.customer_name or event.customer_email
        return f"Deposit received — £{format_minor_units(event.amount_paid_minor_units)} — {who}"

    # ==================== SHARED MARKUP ====================

    def _shell(self, width: int, badge: Optional[str], inner: str, footer_dark: bool = False) -> str:
        b = self.business
        badge_html = ""
        if badge:
            badge_html = (
                '<td align="right"><span style="background:#8B7355;color:#fff;padding:4px 11px;'
                'border-radius:3px;font-size:11px;font-weight:700;letter-spacing:0.06em;'
                f'text-transform:uppercase;">{esc(badge)}</span></td>'
            )
        footer_style = (
            "background:#1A1A1A;color:rgba(255,255,255,0.35);" if footer_dark
            else "background:#F5F3F0;border-top:1px solid #E0DCD5;color:#BBB;"
        )
        return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><meta name="viewport" content="width=device-width,initial-scale=1"></head>
<body style="margin:0;padding:0;background:#F5F3F0;font-family:-apple-system,'DM Sans',sans-serif;">
<table width="100%" cellpadding="0" cellspacing="0" style="background:#F5F3F0;padding:24px 0;">
  <tr><td align="center">
  <table width="{width}" cellpadding="0" cellspacing="0" style="max-width:{width}px;background:#fff;border-radius:10px;overflow:hidden;box-shadow:0 4px 20px rgba(0,0,0,0.08);">
    <tr><td style="background:#2C2C2C;padding:18px 28px;">
      <table width="100%" cellpadding="0" cellspacing="0"><tr>
        <td><span style="font-family:Georgia,serif;font-size:18px;color:#fff;">Sears Melvin <span style="opacity:0.55;font-weight:300;">Memorials</span></span></td>
        {badge_html}
      </tr></table>
    </td></tr>
{inner}
    <tr><td style="{footer_style}padding:14px 28px;text-align:center;">
      <span style="font-size:11px;">{esc(b.name)} &middot; {esc(b.region)} &middot; <a href="mailto:{esc(b.email)}" style="color:inherit;">{esc(b.email)}</a></span>
    </td></tr>
  </table>
  </td></tr>
</table>
</body></html>"""

    @staticmethod
    def _label(text: str) -> str:
        return (
            '<div style="font-size:10px;letter-spacing:0.08em;text-transform:uppercase;'
            f'color:#8B7355;font-weight:700;margin-bottom:12px;">{esc(text)}</div>'
        )

    @staticmethod
    def _row(label: str, value_html: str, top: bool = False) -> str:
        valign = "vertical-align:top;" if top else ""
        return (
            f'<tr><td style="padding:5px 0;color:#999;width:110px;{valign}">{esc(label)}</td>'
            f'<td style="padding:5px 0;color:#1A1A1A;line-height:1.6;">{value_html}</td></tr>'
        )

    @staticmethod
    def _swatch(stone_hex: str, size: int = 11) -> str:
        return (
            f'<span style="display:inline-block;width:{size}px;height:{size}px;border-radius:50%;'
            f'background:{stone_hex};vertical-align:middle;margin-right:5px;'
            'border:1px solid rgba(0,0,0,0.15);"></span>'
        )

    def _price_table(self, money: MoneyBreakdown) -> str:
        rows = []
        for label, amount in price_lines(money):
            weight = "font-weight:700;border-top:1px solid #E0DCD5;" if label == "Total" else ""
            rows.append(
                f'<tr><td style="padding:4px 0;color:#555;{weight}">{esc(label)}</td>'
                f'<td align="right" style="padding:4px 0;color:#2C2C2C;{weight}">{esc(amount)}</td></tr>'
            )
        return (
            '<table width="100%" cellpadding="0" cellspacing="0" style="font-size:13px;">'
            + "".join(rows) + "</table>"
        )

    def _customer_rows(self, submission: Submission) -> str:
        rows = [
            self._row("Name", f"<strong>{esc(submission.name)}</strong>"),
            self._row("Email", f'<a href="mailto:{esc(submission.email)}" style="color:#8B7355;">{esc(submission.email)}</a>'),
            self._row("Phone", esc(submission.phone or NOT_PROVIDED)),
        ]
        if submission.location:
            rows.append(self._row("Cemetery", esc(submission.location)))
        if not submission.is_quote and submission.enquiry_type:
            rows.append(self._row("Enquiry type", esc(title_case_slug(submission.enquiry_type))))
        return "".join(rows)

    # ==================== BUSINESS NOTIFICATION ====================

    def render_business_notification(self, submission: Submission, money: MoneyBreakdown,
                                     context: OrchestrationContext) -> Document:
        if submission.is_quote:
            return Document.html(self._quote_business(submission, money, context))
        return Document.html(self._enquiry_business(submission, context))

    def _enquiry_business(self, submission: Submission, context: OrchestrationContext) -> str:
        inner = f"""
    <tr><td style="padding:26px 28px 4px;">
      <h2 style="font-family:Georgia,serif;font-size:22px;color:#2C2C2C;font-weight:normal;margin:0 0 4px;">New Website Enquiry</h2>
      <p style="color:#AAA;font-size:12px;margin:0;">Received {esc(context.submitted_at)}</p>
    </td></tr>
    <tr><td style="padding:20px 28px 0;">
      {self._label("Customer")}
      <table width="100%" cellpadding="0" cellspacing="0" style="font-size:13px;">{self._customer_rows(submission)}</table>
    </td></tr>
    <tr><td style="padding:16px 28px 28px;">
      {self._label("Message")}
      <div style="background:#F5F3F0;border-radius:6px;padding:14px 16px;font-size:13px;color:#1A1A1A;line-height:1.7;">{esc_multiline(submission.message or PLACEHOLDER)}</div>
    </td></tr>"""
        return self._shell(600, "New Enquiry", inner)

    def _quote_business(self, submission: Submission, money: MoneyBreakdown,
                        context: OrchestrationContext) -> str:
        product = submission.product_or_empty
        stone_hex = self.business.stone_hex(product.colour)

        config_rows = [
            self._row("Stone", f"{self._swatch(stone_hex)}{esc(product.colour or PLACEHOLDER)}"),
            self._row("Size", esc(product.size or PLACEHOLDER)),
        ]
        if money.addon_lines:
            config_rows.append(self._row("Extras", esc(addon_names(money)), top=True))
        if product.inscription:
            config_rows.append(self._row("Inscription", f"<em>{esc_multiline(product.inscription.strip())}</em>", top=True))

        payment = "Invoice only" if submission.invoice_only else "Deposit"
        if context.hosted_invoice_url:
            payment += f' &middot; <a href="{esc(context.hosted_invoice_url)}" style="color:#8B7355;">Stripe invoice</a>'
        elif submission.invoice_only:
            payment += " &middot; invoice not issued, send manually"

        message_block = ""
        if submission.message:
            message_block = f"""
    <tr><td style="padding:0 28px 24px;">
      {self._label("Customer Notes")}
      <div style="background:#F5F3F0;border-radius:6px;padding:14px 16px;font-size:13px;color:#1A1A1A;line-height:1.7;">{esc_multiline(submission.message)}</div>
    </td></tr>"""

        inner = f"""
    <tr><td style="padding:26px 28px 4px;">
      <h2 style="font-family:Georgia,serif;font-size:22px;color:#2C2C2C;font-weight:normal;margin:0 0 4px;">New Quote Request</h2>
      <p style="color:#AAA;font-size:12px;margin:0;">Received {esc(context.submitted_at)}</p>
    </td></tr>
    <tr><td style="padding:20px 28px 0;">
      {self._label("Memorial Configuration")}
      <table width="100%" cellpadding="0" cellspacing="0" style="border:1px solid #E0DCD5;border-radius:8px;overflow:hidden;">
        <tr>
          <td width="8" style="background:{stone_hex};">&nbsp;</td>
          <td style="padding:16px 18px;">
            <div style="font-size:10px;letter-spacing:0.1em;text-transform:uppercase;color:#8B7355;font-weight:700;margin-bottom:4px;">{esc(product.type or "Memorial")}</div>
            <div style="font-family:Georgia,serif;font-size:20px;color:#2C2C2C;margin-bottom:10px;">{esc(product.name or PLACEHOLDER)}</div>
            <table width="100%" cellpadding="0" cellspacing="0" style="font-size:13px;">{"".join(config_rows)}</table>
            <div style="margin-top:12px;">{self._price_table(money)}</div>
          </td>
        </tr>
      </table>
    </td></tr>
    <tr><td style="padding:20px 28px 24px;">
      {self._label("Customer")}
      <table width="100%" cellpadding="0" cellspacing="0" style="font-size:13px;">{self._customer_rows(submission)}{self._row("Payment", payment)}</table>
    </td></tr>{message_block}"""
        return self._shell(620, "New Quote", inner)

    # ==================== CUSTOMER CONFIRMATION ====================

    def render_customer_confirmation(self, submission: Submission, money: MoneyBreakdown,
                                     context: OrchestrationContext) -> Document:
        if submission.is_quote:
            return Document.html(self._quote_customer(submission, money, context))
        return Document.html(self._enquiry_customer(submission))

    def _sign_off(self) -> str:
        return f"""
    <tr><td style="padding:0 28px 32px;">
      <p style="color:#555;font-size:14px;line-height:1.7;margin:0 0 10px;">If you have any urgent questions, please call us on <strong style="color:#2C2C2C;">{esc(self.business.phone)}</strong>.</p>
      <p style="color:#888;font-size:13px;margin:0;line-height:1.7;">With care,<br><strong style="color:#2C2C2C;">The Sears Melvin Team</strong></p>
    </td></tr>"""

    def _enquiry_customer(self, submission: Submission) -> str:
        inner = f"""
    <tr><td style="padding:30px 28px 16px;">
      <h2 style="font-family:Georgia,serif;font-size:23px;color:#2C2C2C;font-weight:normal;margin:0 0 14px;">Thank you, {esc(submission.first_name)}.</h2>
      <p style="color:#555;font-size:15px;line-height:1.7;margin:0;">We've received your enquiry and one of our team will be in contact within 24 hours.</p>
    </td></tr>{self._sign_off()}"""
        return self._shell(580, None, inner, footer_dark=True)

    def _quote_customer(self, submission: Submission, money: MoneyBreakdown,
                        context: OrchestrationContext) -> str:
        product = submission.product_or_empty
        stone_hex = self.business.stone_hex(product.colour)

        rows = [
            self._row("Type", esc(product.type or PLACEHOLDER)),
            self._row("Stone", f"{self._swatch(stone_hex, 10)}{esc(product.colour or PLACEHOLDER)}"),
        ]
        if product.size:
            rows.append(self._row("Size", esc(product.size)))
        if money.addon_lines:
            rows.append(self._row("Extras", esc(addon_names(money)), top=True))

        payment_block = ""
        if context.hosted_invoice_url:
            payment_block = f"""
    <tr><td style="padding:0 28px 24px;" align="center">
      <p style="color:#555;font-size:14px;line-height:1.7;margin:0 0 14px;">Your invoice for <strong>{esc(price_label(money))}</strong> is ready. You can view and pay it securely online:</p>
      <a href="{esc(context.hosted_invoice_url)}" style="display:inline-block;background:#8B7355;color:#fff;padding:12px 28px;border-radius:4px;text-decoration:none;font-weight:700;">View &amp; pay your invoice</a>
    </td></tr>"""
        elif submission.invoice_only:
            payment_block = """
    <tr><td style="padding:0 28px 24px;">
      <p style="color:#555;font-size:14px;line-height:1.7;margin:0;">We'll email your invoice separately once we've confirmed the details with you.</p>
    </td></tr>"""

        inner = f"""
    <tr><td style="padding:30px 28px 0;">
      <h2 style="font-family:Georgia,serif;font-size:23px;color:#2C2C2C;font-weight:normal;margin:0 0 14px;">Thank you, {esc(submission.first_name)}.</h2>
      <p style="color:#555;font-size:15px;line-height:1.7;margin:0 0 22px;">
        We've received your quote request for the
        <strong style="color:#2C2C2C;">{esc(product.name or "memorial")}</strong>
        and our team will be in touch within 24 hours to discuss your requirements.
      </p>
    </td></tr>
    <tr><td style="padding:0 28px 24px;">
      <table width="100%" cellpadding="0" cellspacing="0" style="background:#FAF8F5;border:1px solid #E0DCD5;border-radius:8px;overflow:hidden;">
        <tr>
          <td width="6" style="background:{stone_hex};">&nbsp;</td>
          <td style="padding:16px 18px;">
            {self._label("Your Quote Summary")}
            <div style="font-family:Georgia,serif;font-size:18px;color:#2C2C2C;margin-bottom:10px;">{esc(product.name or PLACEHOLDER)}</div>
            <table width="100%" cellpadding="0" cellspacing="0" style="font-size:13px;">{"".join(rows)}</table>
            <div style="margin-top:12px;">{self._price_table(money)}</div>
          </td>
        </tr>
      </table>
    </td></tr>{payment_block}{self._sign_off()}"""
        return self._shell(580, None, inner, footer_dark=True)

    # ==================== TASK DESCRIPTION ====================

    def render_task_description(self, submission: Submission, money: MoneyBreakdown,
                                context: OrchestrationContext) -> Document:
        if submission.is_quote:
            return Document.text(self._quote_task(submission, money, context))
        return Document.text(self._enquiry_task(submission, context))

    def _enquiry_task(self, submission: Submission, context: OrchestrationContext) -> str:
        lines = [
            "=== WEBSITE ENQUIRY ===",
            "",
            "CUSTOMER",
            f"• Name:         {submission.name}",
            f"• Email:        {submission.email}",
            f"• Phone:        {submission.phone or NOT_PROVIDED}",
            f"• Enquiry type: {submission.enquiry_type or 'Not specified'}",
        ]
        if submission.location:
            lines.append(f"• Cemetery:     {submission.location}")
        lines += [
            "",
            "MESSAGE",
            submission.message or PLACEHOLDER,
            "",
            "---",
            f"Submitted: {context.submitted_at}",
        ]
        return "\n".join(lines)

    def _quote_task(self, submission: Submission, money: MoneyBreakdown,
                    context: OrchestrationContext) -> str:
        product = submission.product_or_empty
        lines = [
            "=== QUOTE REQUEST ===",
            "",
            "PRODUCT SELECTED",
            f"• Memorial:     {product.name or PLACEHOLDER}",
            f"• Type:         {product.type or PLACEHOLDER}",
            f"• Stone:        {product.colour or PLACEHOLDER}",
            f"• Size:         {product.size or PLACEHOLDER}",
            f"• Extras:       {addon_names(money) or 'None'}",
        ]
        if product.inscription:
            lines.append(f'• Inscription:  "{product.inscription}"')
        lines += ["", "PRICE"]
        lines += [f"• {label}: {amount}" for label, amount in price_lines(money)]
        lines += [
            "",
            "CUSTOMER",
            f"• Name:         {submission.name}",
            f"• Email:        {submission.email}",
            f"• Phone:        {submission.phone or NOT_PROVIDED}",
            f"• Cemetery:     {submission.location or NOT_PROVIDED}",
            "",
            "PAYMENT",
            f"• Preference:   {'Invoice only' if submission.invoice_only else 'Deposit'}",
        ]
        if context.hosted_invoice_url:
            lines.append(f"• Invoice link: {context.hosted_invoice_url}")
        if submission.message:
            lines += ["", "CUSTOMER NOTES", f'"{submission.message}"']
        lines += ["", "---", f"Submitted: {context.submitted_at}"]
        return "\n".join(lines)

    # ==================== DEPOSIT ====================

    def render_deposit_confirmation(self, event: DepositPaymentEvent) -> Document:
        first_name = (event.customer_name or "").split(" ")[0] or "there"
        rows = [self._row("Deposit paid", f"<strong>£{esc(format_minor_units(event.amount_paid_minor_units))}</strong>")]
        if event.product_name:
            rows.append(self._row("Memorial", esc(event.product_name)))
        if event.location:
            rows.append(self._row("Cemetery", esc(event.location)))
        inner = f"""
    <tr><td style="padding:30px 28px 0;">
      <h2 style="font-family:Georgia,serif;font-size:23px;color:#2C2C2C;font-weight:normal;margin:0 0 14px;">Thank you, {esc(first_name)}.</h2>
      <p style="color:#555;font-size:15px;line-height:1.7;margin:0 0 22px;">Your deposit has been received and your memorial order is now confirmed. We'll be in touch shortly about the next steps.</p>
    </td></tr>
    <tr><td style="padding:0 28px 24px;">
      <table width="100%" cellpadding="0" cellspacing="0" style="font-size:13px;background:#FAF8F5;border:1px solid #E0DCD5;border-radius:8px;padding:12px 16px;">{"".join(rows)}</table>
    </td></tr>{self._sign_off()}"""
        return Document.html(self._shell(580, None, inner, footer_dark=True))

    def render_deposit_notification(self, event: DepositPaymentEvent) -> Document:
        rows = [
            self._row("Name", f"<strong>{esc(event.customer_name or NOT_PROVIDED)}</strong>"),
            self._row("Email", esc(event.customer_email or NOT_PROVIDED)),
            self._row("Amount", f"<strong>£{esc(format_minor_units(event.amount_paid_minor_units))}</strong>"),
        ]
        if event.product_name:
            rows.append(self._row("Memorial", esc(event.product_name)))
        if event.location:
            rows.append(self._row("Cemetery", esc(event.location)))
        rows.append(self._row("Payment", esc(event.payment_intent_id or PLACEHOLDER)))
        inner = f"""
    <tr><td style="padding:26px 28px 4px;">
      <h2 style="font-family:Georgia,serif;font-size:22px;color:#2C2C2C;font-weight:normal;margin:0 0 4px;">Deposit Received</h2>
    </td></tr>
    <tr><td style="padding:20px 28px 28px;">
      <table width="100%" cellpadding="0" cellspacing="0" style="font-size:13px;">{"".join(rows)}</table>
    </td></tr>"""
        return Document.html(self._shell(600, "Deposit", inner))
