import unittest
from unittest import mock

import requests

from movielog import tokens
from movielog.app import create_app
from movielog.errors import InvalidInput, NotFound, ProviderError
from movielog.models import Account, db
from movielog.tmdb_client import TmdbClient

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'JWT_SECRET': 'tmdb-test-secret-0123456789abcdefghijk',
    'TMDB_API_KEY': 'test-key'
}

SEARCH_PAYLOAD = {
    'page': 1,
    'total_pages': 1,
    'total_results': 1,
    'results': [{
        'id': 603,
        'title': 'The Matrix',
        'poster_path': '/matrix.jpg',
        'release_date': '1999-03-30',
        'vote_average': 8.2
    }]
}

DETAIL_PAYLOAD = {
    'id': 603,
    'title': 'The Matrix',
    'original_title': 'The Matrix',
    'poster_path': '/matrix.jpg',
    'backdrop_path': None,
    'release_date': '1999-03-30',
    'overview': 'A hacker learns the truth.',
    'genres': [{'id': 28, 'name': 'Action'}],
    'runtime': 136,
    'vote_average': 8.2,
    'vote_count': 25000,
    'popularity': 80.1,
    'original_language': 'en'
}


def fake_response(status_code=200, payload=None):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    return response


class TmdbClientTestCase(unittest.TestCase):
    def setUp(self):
        self.http = mock.Mock()
        self.client = TmdbClient('test-key', session=self.http)

    def test_search_normalizes_results(self):
        self.http.get.return_value = fake_response(payload=SEARCH_PAYLOAD)
        result = self.client.search_movies('matrix', year=1999)

        self.assertEqual(result['total_results'], 1)
        self.assertEqual(result['results'][0], {
            'tmdb_id': 603,
            'title': 'The Matrix',
            'poster_path': 'https://image.tmdb.org/t/p/w200/matrix.jpg',
            'release_date': '1999-03-30',
            'vote_average': 8.2
        })
        url = self.http.get.call_args[0][0]
        params = self.http.get.call_args[1]['params']
        self.assertEqual(url, 'https://api.themoviedb.org/3/search/movie')
        self.assertEqual(params['api_key'], 'test-key')
        self.assertEqual(params['year'], 1999)

    def test_search_requires_query(self):
        with self.assertRaises(InvalidInput):
            self.client.search_movies('  ')
        self.http.get.assert_not_called()

    def test_movie_details(self):
        self.http.get.return_value = fake_response(payload=DETAIL_PAYLOAD)
        movie = self.client.get_movie(603)
        self.assertEqual(movie['poster_path'], 'https://image.tmdb.org/t/p/w500/matrix.jpg')
        self.assertIsNone(movie['backdrop_path'])
        self.assertEqual(movie['runtime'], 136)

    def test_list_endpoints_drop_empty_params(self):
        self.http.get.return_value = fake_response(payload=SEARCH_PAYLOAD)
        self.client.upcoming(page=2)
        params = self.http.get.call_args[1]['params']
        self.assertEqual(params['page'], 2)
        self.assertNotIn('region', params)

    def test_not_found(self):
        self.http.get.return_value = fake_response(status_code=404)
        with self.assertRaises(NotFound):
            self.client.get_movie(1)

    def test_provider_failures(self):
        self.http.get.return_value = fake_response(
            status_code=401, payload={'status_message': 'Invalid API key'})
        with self.assertRaises(ProviderError) as ctx:
            self.client.popular()
        self.assertIn('Invalid API key', ctx.exception.message)

        self.http.get.side_effect = requests.ConnectionError('offline')
        with self.assertRaises(ProviderError):
            self.client.now_playing()


class TmdbApiTestCase(unittest.TestCase):
    def setUp(self):
        self.app = create_app(test_config=TEST_CONFIG)
        self.client = self.app.test_client()
        self.tmdb = mock.Mock(spec=TmdbClient)
        self.app.extensions['tmdb_client'] = self.tmdb
        with self.app.app_context():
            account = Account(username='mia', email='mia@example.com', password_hash='x')
            db.session.add(account)
            db.session.commit()
            self.headers = {'Authorization': f'Bearer {tokens.issue(account.id)}'}

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()

    def test_search(self):
        self.tmdb.search_movies.return_value = {'results': []}
        response = self.client.get('/tmdb/search?query=matrix&year=1999', headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.tmdb.search_movies.assert_called_once_with(
            'matrix', page=1, language='en-US', include_adult=False, year=1999)

    def test_movie_not_found(self):
        self.tmdb.get_movie.side_effect = NotFound('Movie not found in TMDb')
        response = self.client.get('/tmdb/movie/1', headers=self.headers)
        self.assertEqual(response.status_code, 404)

    def test_provider_error(self):
        self.tmdb.popular.side_effect = ProviderError()
        self.assertEqual(self.client.get('/tmdb/popular', headers=self.headers).status_code, 502)

    def test_lists(self):
        self.tmdb.now_playing.return_value = {'results': []}
        self.tmdb.upcoming.return_value = {'results': []}
        self.assertEqual(self.client.get('/tmdb/now-playing?region=US',
                                         headers=self.headers).status_code, 200)
        self.tmdb.now_playing.assert_called_once_with(page=1, language='en-US', region='US')
        self.assertEqual(self.client.get('/tmdb/upcoming', headers=self.headers).status_code, 200)

    def test_requires_token(self):
        self.assertEqual(self.client.get('/tmdb/search?query=x').status_code, 401)
        self.tmdb.search_movies.assert_not_called()


if __name__ == '__main__':
    unittest.main()
