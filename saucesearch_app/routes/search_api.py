"""Search API Blueprint.

Exposes the three search operations as named, schema-described tools:

    GET  /api/tools              -> tool list with JSON argument schemas
    POST /api/search/saucenao    -> {imageUrl|imageBuffer|imageDir|imagePath, db}
    POST /api/search/ascii2d     -> {imageUrl|imageBuffer|imageDir|imagePath}
    POST /api/search/nhentai     -> {name}

Search failures are answered with a structured JSON error; they never take
the process down.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, jsonify, request

from sources import get_search_manager
from sources.base import (
    DATABASES, InvalidInput, NoImageFound, SearchError,
    UnexpectedResponseShape, UpstreamRequestFailed
)
from sources.image_input import ImageSpec
from saucesearch_app.log import log
from .validators import MAX_NAME_LENGTH, sanitize_string, validate_fields, validate_image_fields


search_bp = Blueprint('search_api', __name__, url_prefix='/api')

ERROR_STATUS = {
    InvalidInput: 400,
    NoImageFound: 404,
    UnexpectedResponseShape: 502,
    UpstreamRequestFailed: 502,
}

_IMAGE_PROPERTIES = {
    'imageUrl': {
        'type': 'string',
        'description': 'URL of the image to search',
        'format': 'url',
    },
    'imageBuffer': {
        'type': 'string',
        'description': 'Base64 encoded image buffer',
    },
    'imageDir': {
        'type': 'string',
        'description': 'Directory to take the newest image from ("" = default cache directory)',
    },
    'imagePath': {
        'type': 'string',
        'description': 'Path of a local image file',
    },
}

_IMAGE_ONE_OF = [{'required': [field]} for field in _IMAGE_PROPERTIES]

TOOLS = [
    {
        'name': 'saucenao_search',
        'endpoint': '/api/search/saucenao',
        'description': 'Search for the source of an image using SauceNAO',
        'inputSchema': {
            'type': 'object',
            'properties': {
                **_IMAGE_PROPERTIES,
                'db': {
                    'type': 'string',
                    'description': 'Search database (e.g., "all", "pixiv", "danbooru", "book", "doujin", "anime")',
                    'enum': list(DATABASES.keys()),
                    'default': 'all',
                },
            },
            'oneOf': _IMAGE_ONE_OF,
        },
    },
    {
        'name': 'ascii2d_search',
        'endpoint': '/api/search/ascii2d',
        'description': 'Search for the source of an image using ascii2d',
        'inputSchema': {
            'type': 'object',
            'properties': dict(_IMAGE_PROPERTIES),
            'oneOf': _IMAGE_ONE_OF,
        },
    },
    {
        'name': 'nhentai_search',
        'endpoint': '/api/search/nhentai',
        'description': 'Search for doujinshi on nhentai by name',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'name': {
                    'type': 'string',
                    'description': 'Name of the doujinshi to search for',
                },
            },
            'required': ['name'],
        },
    },
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _error(message: str, code: str = 'invalid_request', status: int = 400, detail: Optional[str] = None):
    payload: Dict[str, Any] = {'error': message, 'code': code, 'isError': True}
    if detail:
        payload['detail'] = detail
    return jsonify(payload), status


def _search_error(tool: str, exc: SearchError):
    status = ERROR_STATUS.get(type(exc), 500)
    log(f"❌ {tool}: {exc}")
    detail = None
    if isinstance(exc, UpstreamRequestFailed) and exc.status is not None:
        detail = f"upstream status {exc.status}"
    return _error(str(exc), code=exc.code, status=status, detail=detail)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@search_bp.route('/tools')
def list_tools():
    """List the search operations and their argument schemas."""
    return jsonify({'tools': TOOLS})


@search_bp.route('/search/saucenao', methods=['POST'])
def saucenao_search():
    data = request.get_json(silent=True) or {}
    error = validate_image_fields(data)
    if error:
        return _error(error)

    db = data.get('db') or 'all'
    if not isinstance(db, str):
        return _error("Field 'db' must be str")

    try:
        result = get_search_manager().saucenao_search(ImageSpec.from_payload(data), db)
    except SearchError as exc:
        return _search_error('saucenao_search', exc)
    return jsonify(result)


@search_bp.route('/search/ascii2d', methods=['POST'])
def ascii2d_search():
    data = request.get_json(silent=True) or {}
    error = validate_image_fields(data)
    if error:
        return _error(error)

    try:
        result = get_search_manager().ascii2d_search(ImageSpec.from_payload(data))
    except SearchError as exc:
        return _search_error('ascii2d_search', exc)
    return jsonify(result)


@search_bp.route('/search/nhentai', methods=['POST'])
def nhentai_search():
    data = request.get_json(silent=True) or {}
    error = validate_fields(data, [('name', str, MAX_NAME_LENGTH)])
    if error:
        return _error(error)

    name = sanitize_string(data['name'], max_length=MAX_NAME_LENGTH).strip()
    if not name:
        return _error('Name parameter is required for nhentai search.')

    try:
        result = get_search_manager().nhentai_search(name)
    except SearchError as exc:
        return _search_error('nhentai_search', exc)
    return jsonify(result)
