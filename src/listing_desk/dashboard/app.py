#!/usr/bin/env python3
"""
Listing Desk Dashboard - Web UI for managing listings and watermarking photos
"""
import io
import json
import logging
import traceback
import uuid
from datetime import timedelta
from functools import wraps
from pathlib import Path

from flask import (
    Flask, render_template, request, jsonify, session, current_app, send_file
)
from werkzeug.exceptions import HTTPException
from werkzeug.utils import secure_filename

from ..api import (
    Config, ListingStoreClient, PhotoStorageClient, ListingStoreError, create_clients
)
from ..images import (
    WatermarkProcessor, PlacementSpec, ImageLoadError, decode_data_uri
)
from ..images.placement import Anchor, WatermarkMode
from ..models import (
    PROPERTY_ID, RecordValidationError, load_field_descriptors, next_property_id
)
from ..services import (
    TableView, RecordEditor, Widget, ASC, record_summary, share_payload, social_post_text, facebook_share_url
)
from ..utils import BatchPolicy, UploadPipeline, export_zip
from .handoff import HandoffStore


LOGGER = logging.getLogger(__name__)

# Setup paths for templates and static files
TEMPLATE_DIR = Path(__file__).parent / 'templates'
STATIC_DIR = Path(__file__).parent / 'static'

ALLOWED_EXTENSIONS = {'jpg', 'jpeg', 'png', 'webp', 'gif', 'bmp'}

# 'editor' carries photos from the upload page to the editor,
# 'upload' carries them back with each photo's placement
HANDOFF_TARGETS = ('editor', 'upload')


# ==================== APP WIRING ====================

def get_store() -> ListingStoreClient:
    return current_app.extensions['listing_store']


def get_storage() -> PhotoStorageClient:
    return current_app.extensions['photo_storage']


def get_processor() -> WatermarkProcessor:
    return current_app.extensions['watermark_processor']


def get_fields():
    return current_app.extensions['listing_fields']


def allowed_file(filename):
    """Check if file extension is allowed"""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def api_error_handler(f):
    """Decorator turning domain errors into JSON error responses"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ListingStoreError as e:
            return jsonify({'error': e.message, 'status_code': e.status_code}), e.status_code or 502
        except RecordValidationError as e:
            return jsonify({'error': e.message, 'fields': e.errors}), 400
        except ImageLoadError as e:
            return jsonify({'error': str(e)}), 400
        except ValueError as e:
            return jsonify({'error': str(e)}), 400
    return decorated_function


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError('Expected a JSON object body')
    return data


def _placement_from(data: dict, filename: str, payload: bytes) -> PlacementSpec:
    """Build one image's placement spec from request values"""
    position = None
    if data.get('x') not in (None, '') and data.get('y') not in (None, ''):
        position = (float(data['x']), float(data['y']))
    spec = PlacementSpec(
        filename=filename,
        data=payload,
        mode=data.get('mode') or WatermarkMode.LOGO_CONTACT.value,
        anchor=data.get('anchor') or Anchor.BOTTOM_RIGHT.value,
        scale=float(data.get('scale') or 1.0),
        opacity=float(data['opacity']) if data.get('opacity') not in (None, '') else 0.7,
        position=position,
    )
    # Validates mode/anchor/scale/opacity before any work starts
    spec.options()
    return spec


def _specs_from_request() -> list:
    """Uploaded `images` files paired with the optional `placements` JSON list"""
    files = [f for f in request.files.getlist('images') if f and f.filename]
    if not files:
        raise ValueError('No images provided')
    placements = json.loads(request.form.get('placements') or '[]')
    if not isinstance(placements, list):
        raise ValueError('placements must be a list')
    defaults = {key: request.form.get(key) for key in ('mode', 'anchor', 'scale', 'opacity')}
    specs = []
    for index, file in enumerate(files):
        filename = secure_filename(file.filename) or f'image-{index + 1}.jpg'
        if not allowed_file(filename):
            raise ValueError(f'Unsupported file type: {filename}')
        data = dict(defaults)
        if index < len(placements) and isinstance(placements[index], dict):
            data.update({k: v for k, v in placements[index].items() if v not in (None, '')})
        specs.append(_placement_from(data, filename, file.read()))
    return specs


def _logo_source():
    """Logo for this request: an uploaded `logo` file, else the configured logo"""
    logo = request.files.get('logo')
    if logo and logo.filename:
        return logo.read()
    return current_app.config['LOGO_PATH'] or None


def _contact_text(values) -> str:
    text = values.get('contact_text')
    return current_app.config['CONTACT_TEXT'] if text is None else text


def _handoff_key() -> str:
    if 'handoff_id' not in session:
        session['handoff_id'] = uuid.uuid4().hex
    return session['handoff_id']


def _handoff_target(value) -> str:
    target = value or 'editor'
    if target not in HANDOFF_TARGETS:
        raise ValueError(f"target must be one of {', '.join(HANDOFF_TARGETS)}")
    return target


def create_app(config=Config, store: ListingStoreClient = None, storage: PhotoStorageClient = None,
               processor: WatermarkProcessor = None, fields=None) -> Flask:
    """
    Build the dashboard application

    Args:
        config: Configuration class/object
        store: Listings table client (built from config if not provided)
        storage: Photos bucket client (built from config if not provided)
        processor: Watermark processor
        fields: Field descriptors (loaded from config if not provided)
    """
    app = Flask(__name__, template_folder=str(TEMPLATE_DIR), static_folder=str(STATIC_DIR))
    app.secret_key = config.SECRET_KEY
    app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(hours=1)
    app.config['MAX_CONTENT_LENGTH'] = config.MAX_CONTENT_LENGTH_MB * 1024 * 1024
    app.config['PAGE_SIZE'] = config.PAGE_SIZE
    app.config['LOGO_PATH'] = config.LOGO_PATH
    app.config['CONTACT_TEXT'] = config.CONTACT_TEXT

    if store is None or storage is None:
        default_store, default_storage = create_clients(config)
        store = store or default_store
        storage = storage or default_storage

    app.extensions['listing_store'] = store
    app.extensions['photo_storage'] = storage
    app.extensions['watermark_processor'] = processor or WatermarkProcessor()
    app.extensions['listing_fields'] = fields or load_field_descriptors(config.FIELDS_FILE)
    app.extensions['editor_handoff'] = HandoffStore()

    LOGGER.info("[STARTUP] table=%s bucket=%s configured=%s",
                store.table, storage.bucket, store.is_configured)

    register_routes(app)
    return app


def register_routes(app: Flask):

    # ==================== GLOBAL ERROR HANDLER ====================

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Log unhandled exceptions"""
        if isinstance(e, HTTPException):
            if request.path.startswith('/api/'):
                return jsonify({'error': e.description}), e.code
            return e
        LOGGER.error("[ERROR] Unhandled exception: %s: %s\n%s", type(e).__name__, e, traceback.format_exc())
        if request.path.startswith('/api/'):
            return jsonify({'error': f'{type(e).__name__}: {e}', 'success': False}), 500
        return render_template('error.html', message=str(e)), 500

    @app.route('/ping')
    def ping():
        return 'pong', 200

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok', 'store_configured': get_store().is_configured})

    # ==================== PAGES ====================

    @app.route('/')
    def index():
        """Listing dashboard"""
        editor = RecordEditor(get_fields())
        return render_template(
            'dashboard.html',
            fields=editor.form_fields(),
            configured=get_store().is_configured,
            page_size=current_app.config['PAGE_SIZE']
        )

    @app.route('/upload')
    def upload_page():
        """Multi-file watermark + upload page"""
        return render_template(
            'upload.html',
            configured=get_store().is_configured,
            contact_text=current_app.config['CONTACT_TEXT'],
            modes=[m.value for m in WatermarkMode],
            anchors=[a.value for a in Anchor]
        )

    @app.route('/editor')
    def editor_page():
        """Single-file watermark editor"""
        return render_template(
            'editor.html',
            contact_text=current_app.config['CONTACT_TEXT'],
            modes=[m.value for m in WatermarkMode],
            anchors=[a.value for a in Anchor]
        )

    # ==================== LISTINGS API ====================

    @app.route('/api/fields', methods=['GET'])
    def api_fields():
        return jsonify({'fields': RecordEditor(get_fields()).form_fields()})

    @app.route('/api/listings', methods=['GET'])
    @api_error_handler
    def api_get_listings():
        """Rows after search, column filters, sort and paging, plus the selection state"""
        page_size = request.args.get('page_size', type=int)
        if page_size is None:
            page_size = current_app.config['PAGE_SIZE']
        view = TableView(
            page_size=page_size or None,
            sort_column=request.args.get('sort') or PROPERTY_ID,
            sort_direction=request.args.get('dir') or ASC
        )
        view.set_records(get_store().list_all())
        view.set_search(request.args.get('q', ''))
        for key, value in request.args.items():
            if key.startswith('filter.'):
                view.set_filter(key[len('filter.'):], value)
        view.set_sort(view.sort_column, view.sort_direction)
        if request.args.get('toggle'):
            view.toggle_sort(request.args['toggle'])
        view.set_page(request.args.get('page', 1, type=int))

        for property_id in request.args.getlist('selected'):
            view.select(property_id)
        select_all = request.args.get('select_all')
        if select_all is not None:
            view.select_all(select_all in ('1', 'true'))

        payload = view.to_dict()
        payload['all_selected'] = view.all_selected
        payload['fields'] = [f.name for f in get_fields()]
        return jsonify(payload)

    @app.route('/api/listings', methods=['POST'])
    @api_error_handler
    def api_create_listing():
        editor = RecordEditor(get_fields())
        editor.open_create()
        editor.apply(_json_body())
        saved = editor.submit(get_store())
        return jsonify({'success': True, 'record': saved}), 201

    @app.route('/api/listings/next-id', methods=['GET'])
    @api_error_handler
    def api_next_id():
        return jsonify({'next_id': next_property_id(get_store().list_all())})

    @app.route('/api/listings/step', methods=['POST'])
    @api_error_handler
    def api_step_field():
        """+/- on a stepper field; the result never drops below zero"""
        data = _json_body()
        name = data.get('field') or ''
        editor = RecordEditor(get_fields())
        if editor.widget_for(name) != Widget.STEPPER:
            raise ValueError(f'{name or "field"} is not a stepper field')
        editor.open_create()
        editor.set_value(name, data.get('value'))
        value = editor.step(name, int(data.get('delta', 1)))
        return jsonify({'field': name, 'value': value})

    @app.route('/api/listings/parse-row', methods=['POST'])
    @api_error_handler
    def api_parse_row():
        """Map a pasted tab-separated spreadsheet row onto the fields"""
        editor = RecordEditor(get_fields())
        parsed = editor.apply_paste(_json_body().get('row', ''))
        return jsonify({'fields': parsed})

    @app.route('/api/listings/bulk-delete', methods=['POST'])
    @api_error_handler
    def api_bulk_delete():
        """Delete the selected rows that still exist"""
        ids = _json_body().get('ids') or []
        if not isinstance(ids, list):
            raise ValueError('ids must be a list')
        store = get_store()
        view = TableView()
        view.set_records(store.list_all())
        for property_id in ids:
            view.select(property_id)
        targets = [r.get(PROPERTY_ID) for r in view.selected_records()]
        deleted = store.delete_many(targets)
        return jsonify({'success': True, 'deleted': deleted})

    @app.route('/api/listings/<listing_id>', methods=['GET'])
    @api_error_handler
    def api_get_listing(listing_id):
        record = get_store().get(listing_id)
        if record is None:
            return jsonify({'error': f'Listing {listing_id} not found'}), 404
        return jsonify(record)

    @app.route('/api/listings/<listing_id>', methods=['PUT', 'PATCH'])
    @api_error_handler
    def api_update_listing(listing_id):
        editor = RecordEditor(get_fields())
        editor.open_edit({PROPERTY_ID: listing_id})
        editor.apply(_json_body())
        saved = editor.submit(get_store())
        return jsonify({'success': True, 'record': saved})

    @app.route('/api/listings/<listing_id>', methods=['DELETE'])
    @api_error_handler
    def api_delete_listing(listing_id):
        get_store().delete(listing_id)
        return jsonify({'success': True})

    @app.route('/api/listings/<listing_id>/share', methods=['GET'])
    @api_error_handler
    def api_share_listing(listing_id):
        """Texts for copy / native share / social post"""
        record = get_store().get(listing_id)
        if record is None:
            return jsonify({'error': f'Listing {listing_id} not found'}), 404
        post = social_post_text(record)
        return jsonify({
            'summary': record_summary(record),
            'share': share_payload(record),
            'post': post,
            'facebook_url': facebook_share_url(record, request.host_url, text=post)
        })

    # ==================== IMAGES API ====================

    @app.route('/api/images/preview', methods=['POST'])
    @api_error_handler
    def api_preview_image():
        """Compose one image and return it as a data URI"""
        if request.files.get('image'):
            file = request.files['image']
            values = request.form
            payload = file.read()
            filename = secure_filename(file.filename) or 'image.jpg'
            logo_source = _logo_source()
        else:
            values = _json_body()
            if not values.get('image'):
                return jsonify({'error': 'No image provided'}), 400
            payload = decode_data_uri(values['image'])
            filename = values.get('filename') or 'image.jpg'
            logo_source = decode_data_uri(values['logo']) if values.get('logo') else _logo_source()

        spec = _placement_from(values, filename, payload)
        processor = get_processor()
        encoded, metadata = processor.compose(spec.data, logo_source, spec.options(_contact_text(values)))
        LOGGER.info("[ImageProcessor] preview %s -> %s bytes", filename, metadata['file_size'])
        return jsonify({
            'success': True,
            'filename': filename,
            'image': processor.image_to_base64(encoded, metadata['format']),
            'metadata': {
                'final_size': list(metadata['final_size']),
                'file_size': metadata['file_size'],
                'logo_applied': metadata['logo_applied'],
                'block': list(metadata['block'])
            }
        })

    @app.route('/api/images/export-zip', methods=['POST'])
    @api_error_handler
    def api_export_zip():
        """Watermark every uploaded image and return them as one zip"""
        specs = _specs_from_request()
        items = get_processor().process_batch(specs, _logo_source(), _contact_text(request.form))
        failed = [meta for encoded, meta in items if encoded is None]
        if len(failed) == len(items):
            return jsonify({'error': 'No image could be processed', 'errors': failed}), 400
        archive = export_zip(items)
        response = send_file(
            io.BytesIO(archive),
            mimetype='application/zip',
            as_attachment=True,
            download_name='watermarked.zip'
        )
        response.headers['X-Failed-Count'] = str(len(failed))
        return response

    @app.route('/api/images/upload', methods=['POST'])
    @api_error_handler
    def api_upload_images():
        """Watermark, upload to the photos bucket and record one listing row"""
        store = get_store()
        store.require_configured()
        specs = _specs_from_request()
        policy = BatchPolicy.from_config(request.form.get('policy'))
        pipeline = UploadPipeline(store, get_storage(), get_processor(), policy=policy)
        result = pipeline.run(
            specs,
            property_id=request.form.get('property_id') or None,
            contact_text=_contact_text(request.form),
            logo_source=_logo_source()
        )
        payload = result.to_dict()
        if result.aborted or result.record_error or result.record is None:
            payload['error'] = result.message
            return jsonify(payload), 502
        return jsonify(payload)

    # ==================== EDITOR HANDOFF ====================

    @app.route('/api/editor/handoff', methods=['POST'])
    @api_error_handler
    def api_put_handoff():
        """Stash images (file name + data URI, optional placement) for the other page"""
        data = _json_body()
        target = _handoff_target(data.get('target'))
        files = data.get('files') or []
        if not isinstance(files, list) or not all(isinstance(f, dict) and f.get('data') for f in files):
            raise ValueError('files must be a list of {file, data} objects')
        for index, item in enumerate(files):
            placement = item.get('placement')
            if placement is None:
                continue
            if not isinstance(placement, dict):
                raise ValueError('placement must be an object')
            # Same checks the export applies, so a bad placement fails here
            _placement_from(placement, item.get('file') or f'image-{index + 1}.jpg', b'')
        current_app.extensions['editor_handoff'].put(f"{_handoff_key()}:{target}", files)
        return jsonify({'success': True, 'count': len(files), 'target': target})

    @app.route('/api/editor/handoff', methods=['GET'])
    @api_error_handler
    def api_get_handoff():
        """Read and clear the stashed images"""
        target = _handoff_target(request.args.get('target'))
        files = None
        if 'handoff_id' in session:
            files = current_app.extensions['editor_handoff'].pop(f"{session['handoff_id']}:{target}")
        return jsonify({'files': files or []})
