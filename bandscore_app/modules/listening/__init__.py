# File: bandscore_app/modules/listening/__init__.py
from flask import Blueprint

blueprint = Blueprint('listening', __name__)

# Module Metadata
module_metadata = {
    'name': 'IELTS Listening',
    'icon': 'headphones',
    'category': 'Scoring',
    'url_prefix': '/api/listening',
    'admin_route': None,
    'enabled': True
}


def setup_module(app):
    """Register routes and signal receivers for the listening module."""
    from ...extensions import csrf_protect
    from . import routes  # noqa: F401
    from .events import init_events

    # JSON API authenticated by session; forms are not involved
    csrf_protect.exempt(blueprint)
    init_events(app)
