from flask import Blueprint

chats_bp = Blueprint('chats_api', __name__)


@chats_bp.route('/api/chats', methods=['GET'])
def list_chats():
    from ecc_app import runtime

    return runtime.list_chats_impl()


@chats_bp.route('/api/chats/<chat_id>/messages', methods=['GET'])
def get_chat_messages(chat_id):
    from ecc_app import runtime

    return runtime.get_chat_messages_impl(chat_id)


@chats_bp.route('/api/content/search', methods=['GET'])
def search_content():
    from ecc_app import runtime

    return runtime.search_content_impl()


@chats_bp.route('/api/user-preferences', methods=['PUT'])
def update_user_preferences():
    from ecc_app import runtime

    return runtime.update_user_preferences_impl()


@chats_bp.route('/api/analytics/event', methods=['POST'])
def record_analytics_event():
    from ecc_app import runtime

    return runtime.record_analytics_event_impl()
