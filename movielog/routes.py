from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from movielog import collection, credentials, stats as stats_service, tags as tag_engine, tokens
from movielog.errors import InvalidInput, NotFound
from movielog.models import db, transaction

auth_bp = Blueprint('auth', __name__)
main_bp = Blueprint('main', __name__)
movies_bp = Blueprint('movies', __name__, url_prefix='/movies')
tmdb_bp = Blueprint('tmdb', __name__, url_prefix='/tmdb')


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput('Request body must be a JSON object')
    return data


def _session_payload(account, message):
    return {
        'message': message,
        'user': account.to_dict(),
        'token': tokens.issue(account.id, email=account.email)
    }


# --- Main Routes ---
@main_bp.route('/')
def index():
    return jsonify({'message': 'Welcome to the movielog API', 'version': '0.1.0'})


@main_bp.route('/health')
def health_check():
    return jsonify({'status': 'healthy'}), 200


# --- Auth Routes ---
@auth_bp.route('/accounts', methods=['POST'])
def register():
    data = _json_body()
    account = credentials.register(
        db.session,
        data.get('username'),
        data.get('email'),
        data.get('password')
    )
    return jsonify(_session_payload(account, 'User registered successfully')), 201


@auth_bp.route('/sessions', methods=['POST'])
def login():
    data = _json_body()
    account = credentials.login(db.session, data.get('email'), data.get('password'))
    return jsonify(_session_payload(account, 'Login successful')), 200


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': current_user.to_dict()}), 200


@auth_bp.route('/me', methods=['PUT'])
@login_required
def update_me():
    account = credentials.update_profile(db.session, current_user, _json_body())
    return jsonify({'message': 'Profile updated', 'user': account.to_dict()}), 200


# --- Movie Routes ---
@movies_bp.route('', methods=['GET'])
@login_required
def list_movies():
    filters = collection.ListFilters.from_args(request.args)
    movies = collection.list_entries(db.session, current_user.id, filters)
    return jsonify({'movies': [movie.to_dict() for movie in movies]}), 200


@movies_bp.route('/stats', methods=['GET'])
@login_required
def movie_stats():
    return jsonify({'stats': stats_service.stats(db.session, current_user.id)}), 200


@movies_bp.route('/<int:movie_id>', methods=['GET'])
@login_required
def get_movie(movie_id):
    movie = collection.get(db.session, movie_id, current_user.id)
    return jsonify({'movie': movie.to_dict()}), 200


@movies_bp.route('', methods=['POST'])
@login_required
def create_movie():
    data = _json_body()
    tags = data.pop('tags', None)
    patch = collection.MoviePatch.from_payload(data)
    movie = collection.create(db.session, current_user.id, patch, tags=tags)
    return jsonify({'movie': movie.to_dict()}), 201


@movies_bp.route('/<int:movie_id>', methods=['PUT'])
@login_required
def update_movie(movie_id):
    data = _json_body()
    tags = data.pop('tags', None)
    patch = collection.MoviePatch.from_payload(data)
    movie = collection.update(db.session, movie_id, current_user.id, patch, tags=tags)
    return jsonify({'movie': movie.to_dict()}), 200


@movies_bp.route('/<int:movie_id>', methods=['DELETE'])
@login_required
def delete_movie(movie_id):
    if not collection.delete(db.session, movie_id, current_user.id):
        raise NotFound('Movie not found')
    return jsonify({'message': 'Movie deleted successfully'}), 200


@movies_bp.route('/<int:movie_id>/tags', methods=['POST'])
@login_required
def add_tag(movie_id):
    movie = collection.get(db.session, movie_id, current_user.id)
    name = _json_body().get('tag')
    with transaction(db.session):
        tag = tag_engine.get_or_create_tag(db.session, name)
        tag_engine.attach(db.session, movie.id, tag.id)
    return jsonify({'movie': movie.to_dict()}), 200


@movies_bp.route('/<int:movie_id>/tags/<int:tag_id>', methods=['DELETE'])
@login_required
def remove_tag(movie_id, tag_id):
    movie = collection.get(db.session, movie_id, current_user.id)
    with transaction(db.session):
        tag_engine.detach(db.session, movie.id, tag_id)
    return jsonify({'movie': movie.to_dict()}), 200


# --- TMDb Routes ---
def _tmdb():
    return current_app.extensions['tmdb_client']


def _list_options():
    return {
        'page': request.args.get('page', 1, type=int),
        'language': request.args.get('language', 'en-US'),
        'region': request.args.get('region')
    }


@tmdb_bp.route('/search')
@login_required
def tmdb_search():
    results = _tmdb().search_movies(
        request.args.get('query', ''),
        page=request.args.get('page', 1, type=int),
        language=request.args.get('language', 'en-US'),
        include_adult=request.args.get('include_adult') == 'true',
        year=request.args.get('year', type=int)
    )
    return jsonify(results), 200


@tmdb_bp.route('/movie/<int:tmdb_id>')
@login_required
def tmdb_movie(tmdb_id):
    movie = _tmdb().get_movie(tmdb_id, language=request.args.get('language', 'en-US'))
    return jsonify(movie), 200


@tmdb_bp.route('/popular')
@login_required
def tmdb_popular():
    return jsonify(_tmdb().popular(**_list_options())), 200


@tmdb_bp.route('/now-playing')
@login_required
def tmdb_now_playing():
    return jsonify(_tmdb().now_playing(**_list_options())), 200


@tmdb_bp.route('/upcoming')
@login_required
def tmdb_upcoming():
    return jsonify(_tmdb().upcoming(**_list_options())), 200
