"""API blueprint for REST endpoints."""

import threading
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from flask import Blueprint, request, jsonify, current_app
from ...core.config import get_config
from ...core.scanner import CancellationToken, PluginScanner
from ...core.models import ScanOptions
from ...core.normalizer import normalize_file_name, validate_name
from ...core.parser import has_ambiguous_version, parse_file_name
from ...core.snapshot import load_snapshot
from ...core.exceptions import (
    FileSystemError, ScanError, ValidationError, PermissionDeniedError,
    PathNotFoundError, DirectoryUnreadableError, PluginCatalogError
)

api_bp = Blueprint('api', __name__)

logger = logging.getLogger(__name__)

# Global state for the background scan
_scan_state = {
    'active': False,
    'progress': {},
    'thread': None,
    'token': None,
    'result': None,
    'root': None
}
_scan_lock = threading.Lock()


def get_app_config():
    """Configuration of the running app, falling back to the global one."""
    return current_app.config.get('PLUGIN_CATALOG_CONFIG') or get_config()


def handle_api_error(error, operation="operation"):
    """
    Handle API errors and return appropriate JSON response.

    Args:
        error: The exception that occurred
        operation: Description of the operation that failed

    Returns:
        Tuple of (response_dict, status_code)
    """
    current_app.logger.error(f"API error in {operation}: {error}", exc_info=True)

    if isinstance(error, ValidationError):
        return {'error': 'Validation error', 'message': str(error)}, 400
    elif isinstance(error, PathNotFoundError):
        return {'error': 'Path not found', 'message': str(error)}, 404
    elif isinstance(error, PermissionDeniedError):
        return {'error': 'Permission denied', 'message': str(error)}, 403
    elif isinstance(error, DirectoryUnreadableError):
        return {'error': 'Directory unreadable', 'message': str(error)}, 400
    elif isinstance(error, FileSystemError):
        return {'error': 'File system error', 'message': str(error)}, 400
    elif isinstance(error, ScanError):
        return {'error': 'Scan error', 'message': str(error)}, 400
    else:
        return {'error': 'Internal server error', 'message': 'An unexpected error occurred'}, 500


def _resolve_root(value, app_config):
    root = value or app_config.scan.main_folder or _scan_state['root']
    if not root:
        raise ValidationError("A root folder is required (no scan.main_folder configured)")
    return Path(root)


@api_bp.route('/scan', methods=['POST'])
def start_scan():
    """
    Start a scan in a background thread.

    JSON body (all optional):
    - root: Folder to scan (default: scan.main_folder)
    - dry_run: Compute renames without touching files (default: false)
    - rename_files: Rename plugin files (default from config)
    - rename_images: Rename images after their plugin (default from config)
    """
    try:
        app_config = get_app_config()
        data = request.get_json(silent=True) or {}

        root = _resolve_root(data.get('root'), app_config)
        if not root.exists():
            raise PathNotFoundError(f"Directory does not exist: {root}")
        if not root.is_dir():
            raise ValidationError(f"Path is not a directory: {root}")

        options = ScanOptions(
            rename_files=bool(data.get('rename_files', app_config.scan.rename_files)),
            rename_images=bool(data.get('rename_images', app_config.scan.rename_images)),
            dry_run=bool(data.get('dry_run', False))
        )

        with _scan_lock:
            if _scan_state['active']:
                return jsonify({'error': 'Scan already in progress'}), 409

            token = CancellationToken()
            _scan_state.update({
                'active': True,
                'token': token,
                'result': None,
                'root': str(root),
                'progress': {
                    'status': 'running',
                    'developers_done': 0,
                    'developers_total': 0,
                    'dry_run': options.dry_run,
                    'start_time': datetime.now().isoformat()
                }
            })

        def progress_callback(done, total):
            _scan_state['progress'].update({
                'developers_done': done,
                'developers_total': total
            })

        def run_scan():
            scanner = PluginScanner(config=app_config, progress_callback=progress_callback,
                                    cancel_token=token)
            try:
                result = scanner.scan(root, options)
                _scan_state['result'] = {
                    **result.counts(),
                    'renamed': result.renamed,
                    'failed': result.failed,
                    'errors': result.errors,
                    'duration': round(result.duration, 3)
                }
                _scan_state['progress']['status'] = 'stopped' if result.stopped else 'completed'
            except PluginCatalogError as e:
                logger.error(f"Scan error: {e}")
                _scan_state['progress'].update({'status': 'error', 'error': str(e)})
            except Exception as e:
                logger.error(f"Unexpected scan error: {e}", exc_info=True)
                _scan_state['progress'].update({'status': 'error', 'error': str(e)})
            finally:
                _scan_state['progress']['end_time'] = datetime.now().isoformat()
                _scan_state['active'] = False

        thread = threading.Thread(target=run_scan, name="plugin-scan")
        thread.daemon = True
        _scan_state['thread'] = thread
        thread.start()

        return jsonify({
            'message': 'Scan started successfully',
            'root': str(root),
            'dry_run': options.dry_run
        }), 202

    except PluginCatalogError as e:
        response_data, status_code = handle_api_error(e, "start scan")
        return jsonify(response_data), status_code


@api_bp.route('/scan/status', methods=['GET'])
def get_scan_status():
    """Get current scan status, progress and the result of the last scan."""
    return jsonify({
        'active': _scan_state['active'],
        'root': _scan_state['root'],
        'progress': _scan_state['progress'] or {},
        'result': _scan_state['result']
    })


@api_bp.route('/scan', methods=['DELETE'])
def stop_scan():
    """Request the running scan to stop at the next plugin boundary."""
    token = _scan_state['token']
    if not _scan_state['active'] or token is None:
        return jsonify({'error': 'No scan in progress'}), 400

    token.cancel()
    _scan_state['progress']['status'] = 'stopping'
    return jsonify({'message': 'Scan stop requested'})


@api_bp.route('/catalog', methods=['GET'])
def get_catalog():
    """
    Return the catalog snapshot written by the last scan.

    Query parameters:
    - root: Scanned folder (default: scan.main_folder or the last scanned folder)
    """
    try:
        app_config = get_app_config()
        root = _resolve_root(request.args.get('root', '').strip(), app_config)
        return jsonify(load_snapshot(root, app_config.scan.snapshot_filename))
    except PathNotFoundError:
        return jsonify({'error': 'Catalog not found', 'message': 'Run a scan first'}), 404
    except ValueError as e:
        current_app.logger.error(f"Corrupt catalog snapshot: {e}")
        return jsonify({'error': 'Catalog unreadable', 'message': str(e)}), 500
    except PluginCatalogError as e:
        response_data, status_code = handle_api_error(e, "get catalog")
        return jsonify(response_data), status_code


@api_bp.route('/parse', methods=['GET'])
def parse_name():
    """
    Parse a plugin file name.

    Query parameters:
    - name: File name to parse (required)
    - developer: Developer folder name; adds the canonical name to the response
    """
    try:
        name = request.args.get('name', '').strip()
        if not name:
            raise ValidationError("Query parameter 'name' is required")

        developer = request.args.get('developer', '').strip()
        if developer:
            validate_name(developer, "developer name")

        parsed = parse_file_name(name, developer)
        response = {
            'name': name,
            'parsed': asdict(parsed),
            'ambiguous_version': has_ambiguous_version(name)
        }
        if developer:
            response['canonical_name'] = normalize_file_name(parsed, developer)

        return jsonify(response)

    except PluginCatalogError as e:
        response_data, status_code = handle_api_error(e, "parse name")
        return jsonify(response_data), status_code


@api_bp.route('/health', methods=['GET'])
def health_check():
    """Report service health."""
    app_config = get_app_config()
    return jsonify({
        'status': 'healthy',
        'version': app_config.version,
        'scan_active': _scan_state['active'],
        'timestamp': datetime.now().isoformat()
    })
