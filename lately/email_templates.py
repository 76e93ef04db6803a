"""
MJML Email Templates
Provider-facing emails, compiled to HTML before sending
"""

from html import escape
from typing import Optional

THEME = {
    "primary": "#4f46e5",
    "background": "#f8fafc",
    "card_bg": "#f5f5f5",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
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
              border-radius="5px"
              padding="10px 20px">
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
        <mj-section background-color="#ffffff" padding="40px 40px 24px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              Best regards, The Lately Team
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def service_approval_required_template(
    business_name: str,
    service_name: str,
    platform: str,
    original_price: float,
    discounted_price: float,
    discount_percentage: float,
    dashboard_url: str,
) -> str:
    """New synced service awaiting provider approval"""
    price_lines = ""
    if original_price > 0:
        price_lines += f"<p><strong>Original Price:</strong> ${original_price:.2f}</p>"
    if discounted_price > 0:
        price_lines += f"<p><strong>Discounted Price:</strong> ${discounted_price:.2f}</p>"
    if discount_percentage > 0:
        price_lines += f"<p><strong>Discount Applied:</strong> {discount_percentage:g}%</p>"

    content = f"""
    <mj-text>
      Hi {escape(business_name)},
    </mj-text>

    <mj-text>
      A new service has been synced from your {escape(platform)} account and requires your approval
      before going live on Lately:
    </mj-text>

    <mj-text container-background-color="{THEME['card_bg']}" padding="15px">
      <h3>{escape(service_name)}</h3>
      {price_lines}
      <p><strong>Platform:</strong> {escape(platform)}</p>
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="20px 0 0 0">
      Please log in to your Lately provider dashboard to review and approve this service.
    </mj-text>
    """

    return get_base_template(
        title="New Service Requires Your Approval",
        preview_text=f"{service_name} requires your approval before going live",
        content_sections=content,
        cta_url=dashboard_url,
        cta_label="Review Service",
    )
