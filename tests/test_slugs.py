import re

import pytest

from howisyourday.slugs import generate_unique_slug, slugify

SLUG_ALPHABET = re.compile(r'^[a-z0-9_-]*$')

SAMPLES = [
    'Hello World',
    '  Leading and trailing  ',
    'Crème brûlée & coffee!',
    'multiple---hyphens--here',
    '---',
    '',
    'Tabs\tand\nnewlines',
    'UPPER case_with_underscores',
    '日本語のタイトル',
    '-already-a-slug-',
]


@pytest.mark.parametrize('text', SAMPLES)
def test_slugify_is_idempotent(text):
    once = slugify(text)
    assert slugify(once) == once


@pytest.mark.parametrize('text', SAMPLES)
def test_slugify_alphabet_and_edges(text):
    slug = slugify(text)
    assert SLUG_ALPHABET.match(slug)
    assert not slug.startswith('-')
    assert not slug.endswith('-')
    assert '--' not in slug


def test_slugify_examples():
    assert slugify('Hi') == 'hi'
    assert slugify('Hello   World') == 'hello-world'
    assert slugify('What is this?!') == 'what-is-this'
    assert slugify('a - b') == 'a-b'


def test_slugify_accepts_non_strings():
    assert slugify(2025) == '2025'


def test_unique_slug_returns_base_when_free():
    assert generate_unique_slug('hello', {'other', 'hello-1'}) == 'hello'


def test_unique_slug_probes_counters():
    existing = {'hello', 'hello-1', 'hello-2'}
    slug = generate_unique_slug('hello', existing)
    assert slug == 'hello-3'
    assert slug not in existing


def test_unique_slug_accepts_any_iterable():
    assert generate_unique_slug('post', ['post']) == 'post-1'
