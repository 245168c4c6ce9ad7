from .base import Base, JSONType
from .profile import Profile
from .brief import Brief
from .expert import ExpertProfile, ExpertCertification, CaseStudy
from .invite import ExpertInvite
from .matching_run import MatchingRun
from .notification import EmailOutbox, Notification
from .settings import AdminSetting

__all__ = [
    'Base',
    'JSONType',
    'Profile',
    'Brief',
    'ExpertProfile',
    'ExpertCertification',
    'CaseStudy',
    'ExpertInvite',
    'MatchingRun',
    'EmailOutbox',
    'Notification',
    'AdminSetting',
]
