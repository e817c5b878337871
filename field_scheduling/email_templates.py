"""
MJML Email Templates
Customer confirmation requests and operator outcome notices
"""

from typing import Optional

from .utils.sanitization import sanitize_string

THEME = {
    "primary": "#023A2D",
    "primary_light": "#e6f0ed",
    "background": "#f8faf9",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="24px 20px">
          <mj-column>
            <mj-text align="center" font-size="22px" font-weight="700" color="#ffffff">
              Field Scheduling
            </mj-text>
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="{THEME['card_bg']}" padding="32px 40px 40px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              This is an automated message about your scheduled project work.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _schedule_rows(dates: list) -> str:
    """Render grouped schedule entries (work_date, start_time, end_time, engineers) as table rows"""
    rows = []
    for entry in dates:
        engineers = ", ".join(sanitize_string(name) for name in entry.engineers)
        rows.append(
            f"""
            <tr style="border-bottom: 1px solid {THEME['border']};">
              <td style="padding: 8px 0;">{entry.work_date.strftime('%a, %b %d, %Y')}</td>
              <td style="padding: 8px 0;">{entry.start_time.strftime('%H:%M')} - {entry.end_time.strftime('%H:%M')}</td>
              <td style="padding: 8px 0;">{engineers}</td>
            </tr>
            """
        )
    return "".join(rows)


def confirmation_request_template(
    customer_name: str,
    project_name: str,
    dates: list,
    confirm_url: str,
    expires_at_label: str,
    is_reminder: bool = False,
) -> str:
    """Ask a customer to confirm or decline the proposed project dates"""
    intro = (
        "This is a reminder that we are still waiting for your confirmation of the dates below."
        if is_reminder
        else "We have scheduled our engineers for your project. Please review the dates below."
    )
    content = f"""
    <mj-text>
      Hi {sanitize_string(customer_name)},
    </mj-text>

    <mj-text>
      {intro}
    </mj-text>

    <mj-text font-weight="600" color="{THEME['text_primary']}" padding="16px 0 4px 0">
      {sanitize_string(project_name)}
    </mj-text>

    <mj-text font-size="14px">
      <table style="width: 100%; border-collapse: collapse;">
      <tr style="border-bottom: 2px solid {THEME['border']}; text-align: left;">
        <th style="padding: 8px 0;">Date</th>
        <th style="padding: 8px 0;">Time</th>
        <th style="padding: 8px 0;">Engineers</th>
      </tr>
      {_schedule_rows(dates)}
      </table>
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="16px 0 0 0">
      This link expires on {expires_at_label}.
    </mj-text>
    """

    return get_base_template(
        title="Please confirm your project dates",
        preview_text=f"Please confirm the scheduled dates for {sanitize_string(project_name)}",
        content_sections=content,
        cta_url=confirm_url,
        cta_label="Review and Respond",
    )


def confirmation_response_template(
    project_name: str,
    customer_name: str,
    action: str,
    decline_reason: Optional[str] = None,
) -> str:
    """Tell the operator who sent the request how the customer responded"""
    confirmed = action == "confirm"
    outcome = "confirmed" if confirmed else "declined"
    color = THEME["success"] if confirmed else THEME["danger"]

    reason_section = ""
    if not confirmed:
        reason_section = f"""
    <mj-text padding="8px 0 0 0">
      <strong>Reason:</strong> {sanitize_string(decline_reason) if decline_reason else 'No reason provided'}
    </mj-text>
    """

    content = f"""
    <mj-text>
      <span style="color: {color}; font-weight: 600;">{sanitize_string(customer_name)} {outcome}</span>
      the proposed schedule for <strong>{sanitize_string(project_name)}</strong>.
    </mj-text>
    {reason_section}
    <mj-text color="{THEME['text_muted']}" padding="16px 0 0 0">
      {"The assignments are now confirmed." if confirmed else "The assignments were moved back to tentative for replanning."}
    </mj-text>
    """

    return get_base_template(
        title=f"Customer {outcome}",
        preview_text=f"Customer {outcome} - {sanitize_string(project_name)}",
        content_sections=content,
    )
