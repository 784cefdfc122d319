from flask import Blueprint, request, jsonify, current_app
from zkthrone.errors import CoordinatorError
from zkthrone.services.rooms import epoch_ms

main = Blueprint('main', __name__)


def _coordinator():
    return current_app.extensions['zkthrone']


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the ZK Throne coordinator!'})


@main.route('/health')
def health():
    coordinator = _coordinator()
    return jsonify({
        'status': 'healthy',
        'service': 'zk-throne-backend',
        'publicKey': coordinator.signer.public_key,
        'proofBackend': coordinator.proofs.name,
        'timestamp': epoch_ms(),
    })


@main.route('/public-key')
def public_key():
    signer = _coordinator().signer
    return jsonify({'publicKey': signer.public_key, 'format': 'hex', 'algorithm': signer.algorithm})


@main.route('/submit-solution', methods=['POST'])
def submit_solution():
    data = request.get_json(silent=True) or {}
    try:
        attestation = _coordinator().pipeline.submit_solo(
            data.get('player'), data.get('roundId'), data.get('solution')
        )
    except CoordinatorError as exc:
        return jsonify({'success': False, **exc.to_dict()}), 400
    return jsonify({'success': True, 'attestation': attestation.to_dict()})


@main.route('/api/trials')
def list_trials():
    return jsonify(_coordinator().answer_key.all_trials())


@main.route('/api/trials/<int:trial_id>')
def get_trial(trial_id):
    info = _coordinator().answer_key.trial_info(trial_id)
    if info is None:
        return jsonify({'error': f'Invalid trial ID: {trial_id}'}), 404
    return jsonify(info)


@main.route('/api/nonce/<string:wallet>')
def current_nonce(wallet):
    return jsonify({'player': wallet, 'nonce': _coordinator().nonces.current(wallet)})
