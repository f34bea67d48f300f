"""Subject and body rendering for notification emails (Jinja2)."""

from collections.abc import Sequence
from dataclasses import dataclass

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from domain.entities.activity import ActivityEvent, ResourceType
from domain.entities.notification import Frequency, NotificationRule

DIGEST_LINES_PER_ACTION = 10

_FREQUENCY_TEXT = {
    Frequency.HOURLY.value: "Hourly",
    Frequency.DAILY.value: "Daily",
    Frequency.WEEKLY.value: "Weekly",
}

_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background-color: #4dabf5; color: white; padding: 10px 20px; border-radius: 5px 5px 0 0; }
    .content { border: 1px solid #ddd; border-top: none; padding: 20px; border-radius: 0 0 5px 5px; }
    .footer { margin-top: 20px; font-size: 12px; color: #666; text-align: center; }
    .label { font-weight: bold; width: 110px; display: inline-block; }
    .action { font-weight: bold; color: #4dabf5; }
    .action-header { font-weight: bold; color: #4dabf5; border-bottom: 1px solid #eee; margin-bottom: 10px; }
    .timestamp { color: #888; font-size: 12px; }
    .button { background-color: #4dabf5; color: white; padding: 8px 15px; text-decoration: none; border-radius: 3px; }
"""

_TEMPLATES = {
    "activity.txt": """\
Activity Notification from {{ app_name }}
------------------------------------

An action was performed that matches your notification rules:

Action: {{ event.action_type }}
Resource: {{ event.resource_type }}{% if event.resource_title %} ({{ event.resource_title }}){% endif %}
Performed by: {{ event.actor_username }}
Time: {{ timestamp }}
{% if include_details %}
Details: {{ event.details }}
{% endif %}{% if link %}
View in app: {{ link }}
{% endif %}""",
    "activity.html": """\
<!DOCTYPE html>
<html>
<head><style>{{ style }}</style></head>
<body>
  <div class="container">
    <div class="header"><h2>Activity Notification</h2></div>
    <div class="content">
      <p>An action was performed that matches your notification rules:</p>
      <div><span class="label">Action:</span> <span class="action">{{ event.action_type }}</span></div>
      <div><span class="label">Resource:</span> {{ event.resource_type }}{% if event.resource_title %} ({{ event.resource_title }}){% endif %}</div>
      <div><span class="label">Performed by:</span> {{ event.actor_username }}</div>
      <div><span class="label">Time:</span> {{ timestamp }}</div>
      {% if include_details %}<div><span class="label">Details:</span> {{ event.details }}</div>{% endif %}
      {% if link %}<p style="margin-top: 20px;"><a class="button" href="{{ link }}">View in App</a></p>{% endif %}
    </div>
    <div class="footer"><p>This is an automated message from {{ app_name }}. Please do not reply to this email.</p></div>
  </div>
</body>
</html>
""",
    "digest.txt": """\
{{ period }} Activity Summary from {{ app_name }}
{{ "-" * (period|length + 30) }}

This is a summary of activities matching "{{ rule_name }}" in the last {{ period_noun }}:
{% for section in sections %}
{{ section.action }} Actions ({{ section.total }}):
{{ "-" * (section.action|length + 15) }}
{% for line in section.lines %}• {{ line.timestamp }}: {{ line.text }} (by {{ line.username }})
{% endfor %}{% if section.remaining %}... and {{ section.remaining }} more {{ section.action }} actions
{% endif %}{% endfor %}

View all activity in the Admin Dashboard: {{ activity_url }}
""",
    "digest.html": """\
<!DOCTYPE html>
<html>
<head><style>{{ style }}</style></head>
<body>
  <div class="container">
    <div class="header"><h2>{{ period }} Activity Summary</h2></div>
    <div class="content">
      <p>This is a summary of activities matching "{{ rule_name }}" in the last {{ period_noun }}:</p>
      {% for section in sections %}
      <div style="margin-bottom: 20px;">
        <div class="action-header">{{ section.action }} Actions ({{ section.total }})</div>
        {% for line in section.lines %}
        <div>• <span class="timestamp">{{ line.timestamp }}:</span> {{ line.text }} (by {{ line.username }})</div>
        {% endfor %}
        {% if section.remaining %}<div>... and {{ section.remaining }} more {{ section.action }} actions</div>{% endif %}
      </div>
      {% endfor %}
      <p style="margin-top: 30px; text-align: center;"><a class="button" href="{{ activity_url }}">View All Activity</a></p>
    </div>
    <div class="footer"><p>This is an automated message from {{ app_name }}. Please do not reply to this email.</p></div>
  </div>
</body>
</html>
""",
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


@dataclass(frozen=True, slots=True)
class RenderedMessage:
    subject: str
    text_body: str
    html_body: str


@dataclass(frozen=True, slots=True)
class _DigestLine:
    timestamp: str
    text: str
    username: str


@dataclass(frozen=True, slots=True)
class _DigestSection:
    action: str
    total: int
    lines: list[_DigestLine]
    remaining: int


def render_subject(template: str, event: ActivityEvent) -> str:
    """Substitute ``{{action}}``, ``{{resourceType}}`` and ``{{username}}``.

    Plain replacement rather than Jinja: subject templates are admin input.
    """
    return (
        template.replace("{{action}}", event.action_type)
        .replace("{{resourceType}}", event.resource_type)
        .replace("{{username}}", event.actor_username)
    )


def frequency_text(frequency: str) -> str:
    return _FREQUENCY_TEXT.get(frequency, "Periodic")


def _format_timestamp(event: ActivityEvent) -> str:
    return event.timestamp.strftime("%Y-%m-%d %H:%M UTC")


class NotificationTemplates:
    """Builds immediate and digest messages with links into the admin UI."""

    def __init__(self, frontend_url: str, app_name: str = "Media Library") -> None:
        self._frontend_url = frontend_url.rstrip("/")
        self._app_name = app_name

    @property
    def activity_url(self) -> str:
        return f"{self._frontend_url}/admin/activity"

    def resource_link(self, event: ActivityEvent) -> str | None:
        """Deep link for media events that carry a slug."""
        if event.resource_type == ResourceType.MEDIA.value and event.resource_slug:
            return f"{self._frontend_url}/media/slug/{event.resource_slug}"
        return None

    def activity_message(self, event: ActivityEvent, rule: NotificationRule) -> RenderedMessage:
        context = {
            "app_name": self._app_name,
            "style": _STYLE,
            "event": event,
            "timestamp": _format_timestamp(event),
            "include_details": rule.include_details,
            "link": self.resource_link(event),
        }
        return RenderedMessage(
            subject=render_subject(rule.subject_template, event),
            text_body=_env.get_template("activity.txt").render(context),
            html_body=_env.get_template("activity.html").render(context),
        )

    def digest_message(
        self,
        events: Sequence[ActivityEvent],
        rule: NotificationRule,
        frequency: str,
    ) -> RenderedMessage:
        period = frequency_text(frequency)
        context = {
            "app_name": self._app_name,
            "style": _STYLE,
            "period": period,
            "period_noun": {"Hourly": "hour", "Daily": "day", "Weekly": "week"}.get(
                period, "period"
            ),
            "rule_name": rule.name,
            "sections": self._digest_sections(events, rule),
            "activity_url": self.activity_url,
        }
        return RenderedMessage(
            subject=f"[{self._app_name}] {period} Activity Summary",
            text_body=_env.get_template("digest.txt").render(context),
            html_body=_env.get_template("digest.html").render(context),
        )

    @staticmethod
    def _digest_sections(
        events: Sequence[ActivityEvent], rule: NotificationRule
    ) -> list[_DigestSection]:
        by_action: dict[str, list[ActivityEvent]] = {}
        for event in events:
            by_action.setdefault(event.action_type, []).append(event)

        sections = []
        for action, acts in by_action.items():
            lines = [
                _DigestLine(
                    timestamp=_format_timestamp(a),
                    text=(
                        a.details
                        if rule.include_details
                        else a.resource_title or f"{a.resource_type} {a.resource_id}"
                    ),
                    username=a.actor_username,
                )
                for a in acts[:DIGEST_LINES_PER_ACTION]
            ]
            sections.append(
                _DigestSection(
                    action=action,
                    total=len(acts),
                    lines=lines,
                    remaining=max(len(acts) - DIGEST_LINES_PER_ACTION, 0),
                )
            )
        return sections
