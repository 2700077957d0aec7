"""Public post and tag endpoints."""


def test_list_posts_only_returns_published(client, make_post):
    make_post(title='Visible')
    make_post(title='Hidden draft', status='draft')

    response = client.get('/api/posts')

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert [post['title'] for post in body['data']['data']] == ['Visible']
    assert body['data']['pagination'] == {'page': 1, 'limit': 10, 'total': 1, 'totalPages': 1}


def test_list_posts_newest_first(client, make_post):
    make_post(title='Older', published_at='2024-01-01T00:00:00Z')
    make_post(title='Newer', published_at='2024-06-01T00:00:00Z')

    titles = [post['title'] for post in client.get('/api/posts').get_json()['data']['data']]

    assert titles == ['Newer', 'Older']


def test_list_posts_limit_is_clamped(client, make_post):
    make_post()
    pagination = client.get('/api/posts?limit=500&page=0').get_json()['data']['pagination']
    assert pagination['limit'] == 100
    assert pagination['page'] == 1


def test_list_posts_huge_page_is_empty(client, make_post):
    make_post()

    response = client.get(f'/api/posts?page={10 ** 20}')

    assert response.status_code == 200
    assert response.get_json()['data']['data'] == []


def test_tag_filter_is_exact_membership(client, make_post):
    make_post(title='Cooking', tags=['food', 'life'])
    make_post(title='Fast food', tags=['foodie'])

    titles = [post['title'] for post in client.get('/api/posts?tag=food').get_json()['data']['data']]

    assert titles == ['Cooking']


def test_search_matches_title_or_content_case_insensitive(client, make_post):
    make_post(title='Morning Run', content='Legs hurt.')
    make_post(title='Evening', content='A quiet RUNNING session.')
    make_post(title='Unrelated', content='Nothing here.')

    titles = {post['title'] for post in client.get('/api/posts?search=run').get_json()['data']['data']}

    assert titles == {'Morning Run', 'Evening'}


def test_search_treats_wildcards_literally(client, make_post):
    make_post(title='100% done')
    make_post(title='Halfway')

    titles = [post['title'] for post in client.get('/api/posts?search=%25').get_json()['data']['data']]

    assert titles == ['100% done']


def test_get_post_by_slug_includes_author(client, make_post):
    post = make_post(title='Hello There', tags=['hello'])

    response = client.get(f"/api/posts/{post['slug']}")

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['slug'] == 'hello-there'
    assert data['tags'] == ['hello']
    assert data['author_name'] == 'Admin'
    assert data['author_email'] == 'admin@example.com'


def test_get_post_unknown_or_draft_is_404(client, make_post):
    draft = make_post(title='Secret', status='draft')

    for slug in ('does-not-exist', draft['slug']):
        response = client.get(f'/api/posts/{slug}')
        assert response.status_code == 404
        assert response.get_json() == {'success': False, 'error': 'Post not found'}


def test_tags_are_counted_over_published_posts(client, make_post):
    make_post(title='One', tags=['life', 'food'])
    make_post(title='Two', tags=['life'])
    make_post(title='Three', tags=['drafts-only'], status='draft')

    response = client.get('/api/tags')

    assert response.status_code == 200
    assert response.get_json()['data'] == [
        {'tag': 'life', 'count': 2},
        {'tag': 'food', 'count': 1},
    ]


def test_unknown_api_path_uses_envelope(client):
    response = client.get('/api/nothing-here')
    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'error': 'Not Found'}


def test_wrong_method_uses_envelope(client):
    response = client.delete('/api/posts')
    assert response.status_code == 405
    assert response.get_json()['success'] is False
