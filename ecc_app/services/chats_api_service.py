"""Business logic handlers for chat history, content search and preferences."""

MAX_PAGE_SIZE = 50
MIN_MESSAGE_LIMIT = 3
MAX_MESSAGE_LIMIT = 240
MAX_SEARCH_TERM_LENGTH = 200
EVENT_NAME_MAX_LENGTH = 64


def _parse_int(raw_value, default, minimum, maximum):
    try:
        value = int(raw_value)
    except (TypeError, ValueError):
        value = default
    return min(max(value, minimum), maximum)


def _authorize(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
    optimizer = app_ctx.get_database_optimizer()
    if optimizer is None:
        return None, (app_ctx.jsonify({'error': 'Database unavailable'}), 503)
    return (decoded_token['uid'], optimizer), None


def list_chats(app_ctx, request):
    context, error = _authorize(app_ctx, request)
    if error:
        return error
    uid, optimizer = context
    page_size = _parse_int(request.args.get('page_size'), 10, 1, MAX_PAGE_SIZE)
    start_after = str(request.args.get('start_after', '') or '').strip() or None
    return app_ctx.jsonify(optimizer.load_chat_history(uid, page_size=page_size, start_after=start_after))


def get_chat_messages(app_ctx, request, chat_id):
    context, error = _authorize(app_ctx, request)
    if error:
        return error
    uid, optimizer = context
    limit = _parse_int(request.args.get('limit'), 50, MIN_MESSAGE_LIMIT, MAX_MESSAGE_LIMIT)
    messages = optimizer.load_messages(uid, chat_id, limit=limit)
    return app_ctx.jsonify({'chat_id': chat_id, 'messages': messages, 'count': len(messages)})


def search_content(app_ctx, request):
    context, error = _authorize(app_ctx, request)
    if error:
        return error
    uid, optimizer = context
    search_term = str(request.args.get('q', '') or '').strip()[:MAX_SEARCH_TERM_LENGTH]
    filters = {}
    subject = str(request.args.get('subject', '') or '').strip()
    if subject:
        filters['subject'] = subject
    results = optimizer.search_content(uid, search_term, filters)
    return app_ctx.jsonify({'results': results, 'count': len(results)})


def update_preferences(app_ctx, request):
    context, error = _authorize(app_ctx, request)
    if error:
        return error
    uid, optimizer = context
    data = request.get_json(silent=True) or {}
    preferences = data.get('preferences')
    if not isinstance(preferences, dict):
        return app_ctx.jsonify({'error': 'preferences must be an object'}), 400
    try:
        optimizer.update_user_preferences(uid, preferences)
    except Exception as exc:
        app_ctx.logger.error(f"Error updating preferences for {uid}: {exc}")
        return app_ctx.jsonify({'error': 'Could not update preferences'}), 500
    return app_ctx.jsonify({'ok': True, 'preferences': preferences})


def record_event(app_ctx, request):
    context, error = _authorize(app_ctx, request)
    if error:
        return error
    uid, optimizer = context
    data = request.get_json(silent=True) or {}
    event = str(data.get('event') or '').strip().lower()[:EVENT_NAME_MAX_LENGTH]
    if not event:
        return app_ctx.jsonify({'error': 'event is required'}), 400
    metadata = data.get('metadata') if isinstance(data.get('metadata'), dict) else {}
    try:
        optimizer.record_analytics(uid, event, metadata)
    except Exception as exc:
        app_ctx.logger.info(f"⚠️ Could not flush analytics batch: {exc}")
    return app_ctx.jsonify({'ok': True}), 202
