#!/usr/bin/env python3
"""
Message templates for lifecycle notifications.

Each template code renders to an email (subject + HTML) and to the short
in-app form (title, body, call to action). Email bodies are jinja2 HTML
templates extending a shared layout; values are autoescaped.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jinja2
from jinja2.sandbox import SandboxedEnvironment

logger = logging.getLogger(__name__)


@dataclass
class MessageTemplate:
    subject: str
    title: str
    body: str
    cta_text: Optional[str] = None
    cta_path: Optional[str] = None


@dataclass
class RenderedMessage:
    template_code: str
    subject: str
    html: str
    title: str
    body: str
    cta_text: Optional[str] = None
    cta_url: Optional[str] = None


_LAYOUT = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .content { padding: 20px; background: #f9f9f9; }
        .cta { display: inline-block; padding: 10px 18px; background: #4f46e5; color: #fff; border-radius: 6px; text-decoration: none; }
        .footer { text-align: center; padding: 15px; color: #666; font-size: 12px; }
    </style>
</head>
<body>
    <div class="content">
        {% block content %}{% endblock %}
        {% if cta_url %}<p><a class="cta" href="{{ cta_url }}">{{ cta_text }}</a></p>{% endif %}
    </div>
    <div class="footer">You received this because of activity on your Briefmatch account.</div>
</body>
</html>
"""

_EMAIL_BODIES: Dict[str, str] = {
    'expert_invite_to_propose': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>You have been invited to propose on <strong>{{ brief_title }}</strong>.</p>
{% if reasons %}<p>Why you:</p><ul>{% for reason in reasons %}<li>{{ reason }}</li>{% endfor %}</ul>{% endif %}
{% if expires_at %}<p>Please respond by {{ expires_at }}.</p>{% endif %}
{% endblock %}""",
    'client_expert_accepted': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>{{ expert_name or "An expert" }} accepted your invitation for <strong>{{ brief_title }}</strong>.</p>
{% if response_message %}<blockquote>{{ response_message }}</blockquote>{% endif %}
{% endblock %}""",
    'client_finding_more_experts': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>The experts we invited for <strong>{{ brief_title }}</strong> were not able to take it on.
We are finding more experts for you now.</p>
{% endblock %}""",
    'expert_proposal_won': """{% extends "layout.html" %}{% block content %}
<p>Congratulations {{ recipient_name or "" }}!</p>
<p>Your proposal for <strong>{{ brief_title }}</strong> was chosen.</p>
{% endblock %}""",
    'client_expert_selected': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>{{ expert_name or "Your expert" }} is confirmed for <strong>{{ brief_title }}</strong>.
The next step is the first milestone payment.</p>
{% endblock %}""",
    'expert_proposal_not_selected': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>Another proposal was selected for <strong>{{ brief_title }}</strong>. Thanks for participating!</p>
{% endblock %}""",
    'expert_proposal_submitted': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>Your proposal for <strong>{{ brief_title }}</strong> has been submitted.</p>
{% endblock %}""",
    'client_proposals_ready': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>You have {{ proposal_count or 1 }} new proposal(s) for <strong>{{ brief_title }}</strong>.</p>
{% endblock %}""",
    'expert_nudge_propose': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>The client behind <strong>{{ brief_title }}</strong> is still waiting on your proposal.</p>
{% if expires_at %}<p>The invitation closes on {{ expires_at }}.</p>{% endif %}
{% endblock %}""",
    'client_nudge_choose': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>{{ accepted_count or 1 }} expert(s) are ready to start on <strong>{{ brief_title }}</strong>.
Choose one to get your project moving.</p>
{% endblock %}""",
    'payment_received_milestone': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>Payment for {{ milestone_title }} on <strong>{{ project_title }}</strong> has been processed.</p>
{% endblock %}""",
    'qa_passed_milestone': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>{{ milestone_title }} on <strong>{{ project_title }}</strong> has passed QA. Funds released!</p>
{% endblock %}""",
    'qa_failed_milestone': """{% extends "layout.html" %}{% block content %}
<p>Hi {{ recipient_name or "there" }},</p>
<p>{{ milestone_title }} on <strong>{{ project_title }}</strong> needs revisions.</p>
{% if feedback %}<blockquote>{{ feedback }}</blockquote>{% endif %}
{% endblock %}""",
}

TEMPLATES: Dict[str, MessageTemplate] = {
    'expert_invite_to_propose': MessageTemplate(
        subject="You're invited to propose: {{ brief_title }}",
        title="New invitation: {{ brief_title }}",
        body="You've been invited to submit a proposal",
        cta_text="Submit Proposal",
        cta_path="/expert/invites/{{ invite_id }}",
    ),
    'client_expert_accepted': MessageTemplate(
        subject="Expert Accepted Your Project",
        title="An expert accepted: {{ brief_title }}",
        body="{{ expert_name or 'An expert' }} is ready to work on {{ brief_title }}",
        cta_text="Review Experts",
        cta_path="/briefs/{{ brief_id }}",
    ),
    'client_finding_more_experts': MessageTemplate(
        subject="Finding more experts for {{ brief_title }}",
        title="Finding more experts",
        body="We're inviting more experts to {{ brief_title }}",
        cta_text="View Brief",
        cta_path="/briefs/{{ brief_id }}",
    ),
    'expert_proposal_won': MessageTemplate(
        subject="Your proposal was accepted: {{ brief_title }}",
        title="Your proposal was accepted!",
        body="Congratulations! Your proposal for {{ brief_title }} was chosen",
        cta_text="View Project",
        cta_path="/expert/invites/{{ invite_id }}",
    ),
    'client_expert_selected': MessageTemplate(
        subject="Expert confirmed for {{ brief_title }}",
        title="Expert confirmed",
        body="{{ expert_name or 'Your expert' }} is confirmed for {{ brief_title }}",
        cta_text="View Brief",
        cta_path="/briefs/{{ brief_id }}",
    ),
    'expert_proposal_not_selected': MessageTemplate(
        subject="Proposal update: {{ brief_title }}",
        title="Proposal update",
        body="Another proposal was selected for {{ brief_title }}. Thanks for participating!",
    ),
    'expert_proposal_submitted': MessageTemplate(
        subject="Proposal submitted: {{ brief_title }}",
        title="Proposal submitted successfully",
        body="Your proposal for {{ brief_title }} has been submitted",
    ),
    'client_proposals_ready': MessageTemplate(
        subject="New proposals for {{ brief_title }}",
        title="{{ proposal_count or 1 }} proposal(s) received",
        body="You have new proposals for {{ brief_title }}",
        cta_text="Review Proposals",
        cta_path="/briefs/{{ brief_id }}",
    ),
    'expert_nudge_propose': MessageTemplate(
        subject="Reminder: {{ brief_title }} is waiting on your proposal",
        title="Proposal reminder",
        body="The client is still waiting on your proposal for {{ brief_title }}",
        cta_text="Submit Proposal",
        cta_path="/expert/invites/{{ invite_id }}",
    ),
    'client_nudge_choose': MessageTemplate(
        subject="Choose your expert for {{ brief_title }}",
        title="Ready to choose an expert?",
        body="{{ accepted_count or 1 }} expert(s) accepted {{ brief_title }}",
        cta_text="Review Experts",
        cta_path="/briefs/{{ brief_id }}",
    ),
    'payment_received_milestone': MessageTemplate(
        subject="Payment received: {{ project_title }}",
        title="Payment received",
        body="Payment for {{ milestone_title }} on {{ project_title }} has been processed",
        cta_text="View Project",
        cta_path="/projects/{{ project_id }}",
    ),
    'qa_passed_milestone': MessageTemplate(
        subject="QA approved: {{ milestone_title }}",
        title="QA approved - payment released",
        body="{{ milestone_title }} on {{ project_title }} has passed QA. Funds released!",
    ),
    'qa_failed_milestone': MessageTemplate(
        subject="Revisions needed: {{ milestone_title }}",
        title="QA review required",
        body="{{ milestone_title }} on {{ project_title }} needs revisions",
        cta_text="View Details",
        cta_path="/projects/{{ project_id }}",
    ),
}

_html_env = SandboxedEnvironment(
    loader=jinja2.DictLoader(dict(_EMAIL_BODIES, **{'layout.html': _LAYOUT})),
    autoescape=True,
)
_text_env = SandboxedEnvironment(autoescape=False)


def render(template_code: str, variables: Dict[str, Any], site_url: str = "") -> RenderedMessage:
    """
    Render one template code.

    Raises:
        KeyError: If the template code is unknown
    """
    template = TEMPLATES[template_code]

    def _text(source: Optional[str]) -> Optional[str]:
        if source is None:
            return None
        return _text_env.from_string(source).render(**variables)

    cta_url = None
    if template.cta_path:
        cta_url = site_url.rstrip('/') + _text(template.cta_path)

    html = _html_env.get_template(template_code).render(
        cta_url=cta_url,
        cta_text=template.cta_text,
        **variables
    )
    return RenderedMessage(
        template_code=template_code,
        subject=_text(template.subject),
        html=html,
        title=_text(template.title),
        body=_text(template.body),
        cta_text=template.cta_text,
        cta_url=cta_url,
    )
