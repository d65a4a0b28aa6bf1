from flask import Blueprint

generation_bp = Blueprint('generation_api', __name__)


@generation_bp.route('/api/generate-content', methods=['POST'])
def generate_content():
    from ecc_app import runtime

    return runtime.generate_content_impl()


@generation_bp.route('/api/generation-jobs', methods=['POST'])
def start_generation_job():
    from ecc_app import runtime

    return runtime.start_generation_job_impl()


@generation_bp.route('/api/generation-jobs/<job_id>', methods=['GET'])
def get_generation_job(job_id):
    from ecc_app import runtime

    return runtime.get_generation_job_impl(job_id)


@generation_bp.route('/api/generate-summary', methods=['POST'])
def generate_summary():
    from ecc_app import runtime

    return runtime.generate_summary_impl()
