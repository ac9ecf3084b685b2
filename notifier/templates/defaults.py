"""Built-in templates for every category and sample data for test sends.

The HTML parts use inline styles only: braces outside ``{{ }}`` tags are
rejected by template validation.
"""

from typing import Any, Dict, List, NamedTuple


class DefaultTemplate(NamedTuple):
    name: str
    type: str
    subject: str
    html_template: str
    text_template: str


def _html(heading: str, color: str, body: str, footer_label: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">\n'
        f'  <div style="background: #f8f9fa; padding: 20px; border-radius: 8px;">\n'
        f'    <h2 style="color: {color}; margin: 0;">{heading}</h2>\n'
        "  </div>\n"
        '  <div style="padding: 20px;">\n'
        "    <p>Hello {{user.first_name}},</p>\n"
        f"{body}"
        "  </div>\n"
        '  <div style="padding: 15px; text-align: center; font-size: 12px; color: #6c757d;">\n'
        "    <p>This is an automated notification from {{company_name}}.</p>\n"
        "    <p>Questions? Contact {{support_email}}.</p>\n"
        f'    <p><a href="{{{{unsubscribe_url}}}}" style="color: #6c757d;">{footer_label}</a></p>\n'
        "  </div>\n"
        "</div>\n"
    )


def _text(heading: str, body: str, footer_label: str) -> str:
    return (
        f"{heading}\n\n"
        "Hello {{user.first_name}},\n\n"
        f"{body}\n"
        "---\n"
        "This is an automated notification from {{company_name}}.\n"
        f"{footer_label}: {{{{unsubscribe_url}}}}\n"
    )


def _button(path: str, label: str) -> str:
    return (
        '    <p style="text-align: center; margin: 30px 0;">'
        f'<a href="{{{{base_url}}}}{path}" style="background: #1976d2; color: white; '
        f'padding: 12px 24px; text-decoration: none; border-radius: 5px;">{label}</a></p>\n'
    )


DEFAULT_TEMPLATES: List[DefaultTemplate] = [
    DefaultTemplate(
        name="stock-alert",
        type="stock_alert",
        subject="Low Stock Alert: {{product.title}}",
        html_template=_html(
            "Low Stock Alert",
            "#dc3545",
            "    <p>Your product <strong>{{product.title}}</strong> is running low on stock.</p>\n"
            "    <ul>\n"
            "      <li><strong>SKU:</strong> {{product.sku}}</li>\n"
            "      <li><strong>Current stock:</strong> {{product.quantity}} units</li>\n"
            "      <li><strong>Threshold:</strong> {{product.low_stock_threshold}} units</li>\n"
            "    </ul>\n"
            + _button("/dashboard/products/{{product.id}}", "View Product"),
            "Unsubscribe from stock alerts",
        ),
        text_template=_text(
            "LOW STOCK ALERT",
            'Your product "{{product.title}}" is running low on stock.\n\n'
            "- SKU: {{product.sku}}\n"
            "- Current stock: {{product.quantity}} units\n"
            "- Threshold: {{product.low_stock_threshold}} units\n\n"
            "View product: {{base_url}}/dashboard/products/{{product.id}}\n",
            "Unsubscribe from stock alerts",
        ),
    ),
    DefaultTemplate(
        name="task-assigned",
        type="task_assigned",
        subject="New Task Assigned: {{task.title}}",
        html_template=_html(
            "New Task Assigned",
            "#1976d2",
            "    <p>You have been assigned a new task: <strong>{{task.title}}</strong></p>\n"
            "    <ul>\n"
            "      <li><strong>Description:</strong> {{task.description}}</li>\n"
            "      <li><strong>Due:</strong> {{task.due_date}}</li>\n"
            "      <li><strong>Priority:</strong> {{task.priority}}</li>\n"
            "      {{#if task.assigned_by}}<li><strong>Assigned by:</strong> {{task.assigned_by}}</li>{{/if}}\n"
            "    </ul>\n"
            + _button("/dashboard/tasks/{{task.id}}", "View Task"),
            "Unsubscribe from task notifications",
        ),
        text_template=_text(
            "NEW TASK ASSIGNED",
            "You have been assigned a new task: {{task.title}}\n\n"
            "- Description: {{task.description}}\n"
            "- Due: {{task.due_date}}\n"
            "- Priority: {{task.priority}}\n"
            "{{#if task.assigned_by}}- Assigned by: {{task.assigned_by}}\n{{/if}}\n"
            "View task: {{base_url}}/dashboard/tasks/{{task.id}}\n",
            "Unsubscribe from task notifications",
        ),
    ),
    DefaultTemplate(
        name="task-completed",
        type="task_completed",
        subject="Task Completed: {{task.title}}",
        html_template=_html(
            "Task Completed",
            "#28a745",
            "    <p><strong>{{task.title}}</strong> was marked complete"
            "{{#if task.completed_by}} by {{task.completed_by}}{{/if}}.</p>\n"
            + _button("/dashboard/tasks/{{task.id}}", "View Task"),
            "Unsubscribe from task notifications",
        ),
        text_template=_text(
            "TASK COMPLETED",
            "{{task.title}} was marked complete{{#if task.completed_by}} by {{task.completed_by}}{{/if}}.\n\n"
            "View task: {{base_url}}/dashboard/tasks/{{task.id}}\n",
            "Unsubscribe from task notifications",
        ),
    ),
    DefaultTemplate(
        name="task-deadline",
        type="task_deadline",
        subject="Deadline Approaching: {{task.title}}",
        html_template=_html(
            "Deadline Approaching",
            "#fd7e14",
            "    <p><strong>{{task.title}}</strong> is due on {{task.due_date}}.</p>\n"
            + _button("/dashboard/tasks/{{task.id}}", "Open Task"),
            "Unsubscribe from task notifications",
        ),
        text_template=_text(
            "DEADLINE APPROACHING",
            "{{task.title}} is due on {{task.due_date}}.\n\n"
            "Open task: {{base_url}}/dashboard/tasks/{{task.id}}\n",
            "Unsubscribe from task notifications",
        ),
    ),
    DefaultTemplate(
        name="invoice-status-changed",
        type="invoice_status_changed",
        subject="Invoice {{invoice.number}} Status Updated",
        html_template=_html(
            "Invoice Status Updated",
            "#6f42c1",
            "    <p>Invoice <strong>{{invoice.number}}</strong> is now <strong>{{invoice.status}}</strong>.</p>\n"
            "    <ul>\n"
            "      <li><strong>Bill to:</strong> {{invoice.bill_to}}</li>\n"
            "      <li><strong>Total:</strong> {{invoice.total}}</li>\n"
            "    </ul>\n"
            + _button("/dashboard/invoices/{{invoice.id}}", "View Invoice"),
            "Unsubscribe from invoice updates",
        ),
        text_template=_text(
            "INVOICE STATUS UPDATED",
            "Invoice {{invoice.number}} is now {{invoice.status}}.\n\n"
            "- Bill to: {{invoice.bill_to}}\n"
            "- Total: {{invoice.total}}\n\n"
            "View invoice: {{base_url}}/dashboard/invoices/{{invoice.id}}\n",
            "Unsubscribe from invoice updates",
        ),
    ),
    DefaultTemplate(
        name="invoice-overdue",
        type="invoice_overdue",
        subject="Invoice {{invoice.number}} is Overdue",
        html_template=_html(
            "Invoice Overdue",
            "#dc3545",
            "    <p>Invoice <strong>{{invoice.number}}</strong> for {{invoice.total}} was due on "
            "{{invoice.due_date}} and is {{invoice.days_overdue}} days overdue.</p>\n"
            + _button("/dashboard/invoices/{{invoice.id}}", "Review Invoice"),
            "Unsubscribe from invoice updates",
        ),
        text_template=_text(
            "INVOICE OVERDUE",
            "Invoice {{invoice.number}} for {{invoice.total}} was due on {{invoice.due_date}} "
            "and is {{invoice.days_overdue}} days overdue.\n\n"
            "Review invoice: {{base_url}}/dashboard/invoices/{{invoice.id}}\n",
            "Unsubscribe from invoice updates",
        ),
    ),
    DefaultTemplate(
        name="payment-received",
        type="payment_received",
        subject="Payment Received: {{payment.amount}}",
        html_template=_html(
            "Payment Received",
            "#28a745",
            "    <p>We received your payment of <strong>{{payment.amount}}</strong>.</p>\n"
            "    <ul>\n"
            "      <li><strong>Reference:</strong> {{payment.reference}}</li>\n"
            "      <li><strong>Method:</strong> {{payment.method}}</li>\n"
            "    </ul>\n",
            "Unsubscribe from financial alerts",
        ),
        text_template=_text(
            "PAYMENT RECEIVED",
            "We received your payment of {{payment.amount}}.\n\n"
            "- Reference: {{payment.reference}}\n"
            "- Method: {{payment.method}}\n",
            "Unsubscribe from financial alerts",
        ),
    ),
    DefaultTemplate(
        name="payment-failed",
        type="payment_failed",
        subject="Payment Failed: {{payment.amount}}",
        html_template=_html(
            "Payment Failed",
            "#dc3545",
            "    <p>Your payment of <strong>{{payment.amount}}</strong> could not be processed.</p>\n"
            "    {{#if payment.failure_reason}}<p>Reason: {{payment.failure_reason}}</p>{{/if}}\n"
            + _button("/dashboard/billing", "Update Payment Method"),
            "Unsubscribe from financial alerts",
        ),
        text_template=_text(
            "PAYMENT FAILED",
            "Your payment of {{payment.amount}} could not be processed.\n"
            "{{#if payment.failure_reason}}Reason: {{payment.failure_reason}}\n{{/if}}\n"
            "Update your payment method: {{base_url}}/dashboard/billing\n",
            "Unsubscribe from financial alerts",
        ),
    ),
    DefaultTemplate(
        name="subscription-renewal",
        type="subscription_renewal",
        subject="Subscription Renewal Reminder",
        html_template=_html(
            "Subscription Renewal Reminder",
            "#1976d2",
            "    <p>Your <strong>{{subscription.plan_name}}</strong> subscription expires in "
            "{{days_until_expiry}} days, on {{subscription.expiry_date}}.</p>\n"
            "    <p>Renewal amount: <strong>{{subscription.amount}}</strong></p>\n"
            + _button("/dashboard/subscription", "Renew Now"),
            "Unsubscribe from subscription notifications",
        ),
        text_template=_text(
            "SUBSCRIPTION RENEWAL REMINDER",
            "Your {{subscription.plan_name}} subscription expires in {{days_until_expiry}} days, "
            "on {{subscription.expiry_date}}.\n"
            "Renewal amount: {{subscription.amount}}\n\n"
            "Renew: {{base_url}}/dashboard/subscription\n",
            "Unsubscribe from subscription notifications",
        ),
    ),
    DefaultTemplate(
        name="subscription-cancelled",
        type="subscription_cancelled",
        subject="Your {{subscription.plan_name}} Subscription Was Cancelled",
        html_template=_html(
            "Subscription Cancelled",
            "#6c757d",
            "    <p>Your <strong>{{subscription.plan_name}}</strong> subscription was cancelled. "
            "Access continues until {{subscription.expiry_date}}.</p>\n"
            + _button("/dashboard/subscription", "Reactivate"),
            "Unsubscribe from subscription notifications",
        ),
        text_template=_text(
            "SUBSCRIPTION CANCELLED",
            "Your {{subscription.plan_name}} subscription was cancelled. "
            "Access continues until {{subscription.expiry_date}}.\n\n"
            "Reactivate: {{base_url}}/dashboard/subscription\n",
            "Unsubscribe from subscription notifications",
        ),
    ),
    DefaultTemplate(
        name="subscription-payment-failed",
        type="subscription_payment_failed",
        subject="Subscription Payment Failed",
        html_template=_html(
            "Subscription Payment Failed",
            "#dc3545",
            "    <p>We could not charge {{subscription.amount}} for your "
            "<strong>{{subscription.plan_name}}</strong> subscription.</p>\n"
            "    {{#if payment.failure_reason}}<p>Reason: {{payment.failure_reason}}</p>{{/if}}\n"
            + _button("/dashboard/billing", "Update Payment Method"),
            "Unsubscribe from subscription notifications",
        ),
        text_template=_text(
            "SUBSCRIPTION PAYMENT FAILED",
            "We could not charge {{subscription.amount}} for your {{subscription.plan_name}} subscription.\n"
            "{{#if payment.failure_reason}}Reason: {{payment.failure_reason}}\n{{/if}}\n"
            "Update your payment method: {{base_url}}/dashboard/billing\n",
            "Unsubscribe from subscription notifications",
        ),
    ),
    DefaultTemplate(
        name="security-alert",
        type="security_alert",
        subject="Security Alert: {{alert_type}}",
        html_template=_html(
            "Security Alert",
            "#dc3545",
            "    <p>{{alert_message}}</p>\n"
            "    <ul>\n"
            "      <li><strong>Time:</strong> {{alert_time}}</li>\n"
            "      <li><strong>IP address:</strong> {{ip_address}}</li>\n"
            "      {{#if location}}<li><strong>Location:</strong> {{location}}</li>{{/if}}\n"
            "    </ul>\n"
            "    <p>If this was not you, change your password immediately.</p>\n"
            + _button("/dashboard/security", "Review Activity"),
            "Manage notification preferences",
        ),
        text_template=_text(
            "SECURITY ALERT",
            "{{alert_message}}\n\n"
            "- Time: {{alert_time}}\n"
            "- IP address: {{ip_address}}\n"
            "{{#if location}}- Location: {{location}}\n{{/if}}\n"
            "If this was not you, change your password immediately.\n",
            "Manage notification preferences",
        ),
    ),
    DefaultTemplate(
        name="system-maintenance",
        type="system_maintenance",
        subject="Scheduled Maintenance: {{maintenance.start}}",
        html_template=_html(
            "Scheduled Maintenance",
            "#fd7e14",
            "    <p>{{maintenance.description}}</p>\n"
            "    <p>Window: {{maintenance.start}} to {{maintenance.end}}</p>\n"
            "    {{#if maintenance.services}}<p>Affected services:</p>\n"
            "    <ul>{{#each maintenance.services}}<li>{{this}}</li>{{/each}}</ul>{{/if}}\n",
            "Unsubscribe from system notifications",
        ),
        text_template=_text(
            "SCHEDULED MAINTENANCE",
            "{{maintenance.description}}\n"
            "Window: {{maintenance.start}} to {{maintenance.end}}\n"
            "{{#if maintenance.services}}Affected services:\n"
            "{{#each maintenance.services}}- {{this}}\n{{/each}}{{/if}}",
            "Unsubscribe from system notifications",
        ),
    ),
    DefaultTemplate(
        name="feature-announcement",
        type="feature_announcement",
        subject="New: {{announcement.title}}",
        html_template=_html(
            "{{announcement.title}}",
            "#1976d2",
            "    <p>{{announcement.summary}}</p>\n"
            "    {{#if announcement.highlights}}<ul>{{#each announcement.highlights}}"
            "<li>{{this}}</li>{{/each}}</ul>{{/if}}\n"
            + _button("{{announcement.path}}", "Learn More"),
            "Unsubscribe from product announcements",
        ),
        text_template=_text(
            "{{announcement.title}}",
            "{{announcement.summary}}\n"
            "{{#each announcement.highlights}}- {{this}}\n{{/each}}\n"
            "Learn more: {{base_url}}{{announcement.path}}\n",
            "Unsubscribe from product announcements",
        ),
    ),
]


SAMPLE_PAYLOADS: Dict[str, Dict[str, Any]] = {
    "stock_alert": {
        "product": {
            "id": "prod_123",
            "title": "Sample Product",
            "sku": "SKU-0001",
            "quantity": 3,
            "low_stock_threshold": 10,
        }
    },
    "task_assigned": {
        "task": {
            "id": "task_123",
            "title": "Sample Task",
            "description": "This is a test task notification",
            "due_date": "2026-01-15",
            "priority": "High",
            "assigned_by": "Test Admin",
        }
    },
    "task_completed": {
        "task": {"id": "task_123", "title": "Sample Task", "completed_by": "Test Admin"}
    },
    "task_deadline": {
        "task": {"id": "task_123", "title": "Sample Task", "due_date": "2026-01-15"}
    },
    "invoice_status_changed": {
        "invoice": {
            "id": "inv_123",
            "number": "INV-0001",
            "status": "Paid",
            "total": "$1,500.00",
            "bill_to": "Sample Customer",
        }
    },
    "invoice_overdue": {
        "invoice": {
            "id": "inv_123",
            "number": "INV-0001",
            "total": "$1,500.00",
            "due_date": "2026-01-01",
            "days_overdue": 7,
        }
    },
    "payment_received": {
        "payment": {"amount": "$99.00", "reference": "PAY-0001", "method": "Card"}
    },
    "payment_failed": {
        "payment": {"amount": "$99.00", "failure_reason": "Card declined"}
    },
    "subscription_renewal": {
        "subscription": {"plan_name": "Pro", "expiry_date": "2026-02-01", "amount": "$29.00"},
        "days_until_expiry": 7,
    },
    "subscription_cancelled": {
        "subscription": {"plan_name": "Pro", "expiry_date": "2026-02-01"}
    },
    "subscription_payment_failed": {
        "subscription": {"plan_name": "Pro", "amount": "$29.00"},
        "payment": {"failure_reason": "Insufficient funds"},
    },
    "security_alert": {
        "alert_type": "New Login",
        "alert_message": "A new login to your account was detected.",
        "alert_time": "2026-01-10 09:30 UTC",
        "ip_address": "203.0.113.7",
        "location": "Lagos, Nigeria",
    },
    "system_maintenance": {
        "maintenance": {
            "description": "We are upgrading our database servers.",
            "start": "2026-01-20 01:00 UTC",
            "end": "2026-01-20 03:00 UTC",
            "services": ["Dashboard", "API"],
        }
    },
    "feature_announcement": {
        "announcement": {
            "title": "Recurring Invoices",
            "summary": "You can now schedule invoices to repeat automatically.",
            "highlights": ["Weekly, monthly or yearly schedules", "Automatic reminders"],
            "path": "/changelog",
        }
    },
}
