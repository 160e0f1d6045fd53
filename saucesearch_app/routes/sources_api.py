from flask import Blueprint, jsonify
from sources import get_search_manager
from saucesearch_app.log import log

sources_bp = Blueprint('sources_api', __name__, url_prefix='/api/sources')


@sources_bp.route('')
def get_sources():
    """Get list of search backends."""
    manager = get_search_manager()
    return jsonify([
        {
            "id": source.id,
            "name": source.name,
            "icon": source.icon,
            "status": source.status.value,
            "is_available": source.is_available,
        }
        for source in manager.sources.values()
    ])


@sources_bp.route('/health')
def sources_health():
    """Get health status of all backends."""
    manager = get_search_manager()
    return jsonify(manager.get_health_report())


@sources_bp.route('/<source_id>/reset', methods=['POST'])
def reset_source(source_id: str):
    """Reset a backend's error state."""
    manager = get_search_manager()
    if manager.reset_source(source_id):
        log(f"🔄 Reset {source_id}")
        return jsonify({'status': 'ok'})
    return jsonify({'status': 'error', 'message': 'Source not found'}), 404
