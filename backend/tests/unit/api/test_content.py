"""
Unit Tests for Content API Endpoints
"""
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient

from infinitiflow.models import Content, PlanType
from infinitiflow.models.content import ContentStatus, ContentType
from infinitiflow.modules.auth.usage_limits import get_subscription


async def add_content(db, owner, **fields) -> Content:
    fields.setdefault('title', 'Spring launch')
    fields.setdefault('content', 'Our spring collection is here.')
    fields.setdefault('type', ContentType.BLOG_POST)
    item = Content(user_id=owner.id, **fields)
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


NEW_POST = {
    'title': 'Ten tips',
    'content': 'one two three four five',
    'type': 'blog-post',
    'tags': [' SEO ', 'Tips'],
}


class TestCreateContent:

    @pytest.mark.asyncio
    async def test_create(self, client: AsyncClient, db_session, test_user, auth_headers):
        response = await client.post('/api/content', headers=auth_headers, json=NEW_POST)

        assert response.status_code == 201
        body = response.json()
        assert body['message'] == 'Content created successfully'
        item = body['data']['content']
        assert item['userId'] == test_user.id
        assert item['wordCount'] == 5
        assert item['readingTime'] == 1
        assert item['status'] == 'draft'
        assert item['category'] == 'content'
        assert item['tags'] == ['seo', 'tips']

    @pytest.mark.asyncio
    async def test_create_counts_usage(self, client: AsyncClient, db_session, test_user, auth_headers):
        await client.post('/api/content', headers=auth_headers, json=NEW_POST)

        await db_session.refresh(test_user)
        assert test_user.usage_content_generated == 1
        assert test_user.usage_words_generated == 5

        sub = await get_subscription(db_session, test_user.id)
        await db_session.refresh(sub)
        assert sub.usage_content_generated == 1

    @pytest.mark.asyncio
    async def test_monthly_quota(self, client: AsyncClient, user_factory, headers_for):
        """The free plan stops at ten items a month"""
        user = await user_factory(usage_content_generated=9, usage_last_reset_date=datetime.utcnow())
        headers = headers_for(user)

        response = await client.post('/api/content', headers=headers, json=NEW_POST)
        assert response.status_code == 201

        response = await client.post('/api/content', headers=headers, json=NEW_POST)
        assert response.status_code == 402
        body = response.json()
        assert body['code'] == 'PAYMENT_REQUIRED'
        assert body['message'] == 'Content limit reached for your plan'

    @pytest.mark.asyncio
    async def test_quota_resets_with_the_month(self, client: AsyncClient, user_factory, headers_for):
        user = await user_factory(usage_content_generated=10, usage_last_reset_date=datetime(2020, 3, 1))

        response = await client.post('/api/content', headers=headers_for(user), json=NEW_POST)

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_paid_plan_has_more_room(self, client: AsyncClient, user_factory, headers_for):
        user = await user_factory(
            plan=PlanType.BASIC, usage_content_generated=10, usage_last_reset_date=datetime.utcnow()
        )

        response = await client.post('/api/content', headers=headers_for(user), json=NEW_POST)

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_invalid_type(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/content', headers=auth_headers, json={**NEW_POST, 'type': 'poem'})

        assert response.status_code == 400
        assert response.json()['details']['errors'][0]['field'] == 'type'

    @pytest.mark.asyncio
    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post('/api/content', json=NEW_POST)

        assert response.status_code == 401


class TestGenerateContent:

    @pytest.mark.asyncio
    async def test_generate(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/content/generate', headers=auth_headers, json={
            'prompt': 'Announce our new running shoe',
            'type': 'ad-copy',
            'generationSettings': {'tone': 'friendly', 'maxTokens': 200},
        })

        assert response.status_code == 201
        body = response.json()
        assert body['message'] == 'Content generated successfully'
        item = body['data']['content']
        assert item['title'] == 'Generated ad-copy'
        assert item['prompt'] == 'Announce our new running shoe'
        assert 'Announce our new running shoe' in item['content']
        assert item['generationSettings']['tone'] == 'friendly'
        assert item['generationSettings']['maxTokens'] == 200
        assert item['generationSettings']['model'] == 'gpt-4'

    @pytest.mark.asyncio
    async def test_generate_bad_tone(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/content/generate', headers=auth_headers, json={
            'prompt': 'x',
            'type': 'email',
            'generationSettings': {'tone': 'angry'},
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_generate_respects_quota(self, client: AsyncClient, user_factory, headers_for):
        user = await user_factory(usage_content_generated=10, usage_last_reset_date=datetime.utcnow())

        response = await client.post('/api/content/generate', headers=headers_for(user), json={
            'prompt': 'x', 'type': 'email',
        })

        assert response.status_code == 402


class TestListContent:

    @pytest.mark.asyncio
    async def test_only_own_content_newest_first(self, client: AsyncClient, db_session, test_user,
                                                 auth_headers, user_factory):
        other = await user_factory()
        await add_content(db_session, test_user, title='Old', created_at=datetime.utcnow() - timedelta(days=2))
        await add_content(db_session, test_user, title='New')
        await add_content(db_session, other, title='Not mine')

        response = await client.get('/api/content', headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body['results'] == 2
        assert [c['title'] for c in body['data']['content']] == ['New', 'Old']
        assert body['data']['pagination'] == {'page': 1, 'limit': 10, 'total': 2, 'pages': 1}

    @pytest.mark.asyncio
    async def test_pagination(self, client: AsyncClient, db_session, test_user, auth_headers):
        for i in range(5):
            await add_content(db_session, test_user, title=f'Post {i}',
                              created_at=datetime.utcnow() - timedelta(minutes=i))

        response = await client.get('/api/content?page=2&limit=2', headers=auth_headers)

        body = response.json()
        assert [c['title'] for c in body['data']['content']] == ['Post 2', 'Post 3']
        assert body['data']['pagination'] == {'page': 2, 'limit': 2, 'total': 5, 'pages': 3}

    @pytest.mark.asyncio
    async def test_filters(self, client: AsyncClient, db_session, test_user, auth_headers):
        await add_content(db_session, test_user, title='Mail', type=ContentType.EMAIL)
        await add_content(db_session, test_user, title='Blog', status=ContentStatus.PUBLISHED)

        by_type = await client.get('/api/content?type=email', headers=auth_headers)
        by_status = await client.get('/api/content?status=published', headers=auth_headers)

        assert [c['title'] for c in by_type.json()['data']['content']] == ['Mail']
        published = by_status.json()['data']['content']
        assert [c['title'] for c in published] == ['Blog']
        assert published[0]['publishedAt'] is not None

    @pytest.mark.asyncio
    async def test_sort_by_title(self, client: AsyncClient, db_session, test_user, auth_headers):
        for title in ('Banana', 'Apple', 'Cherry'):
            await add_content(db_session, test_user, title=title)

        response = await client.get('/api/content?sort=title', headers=auth_headers)

        assert [c['title'] for c in response.json()['data']['content']] == ['Apple', 'Banana', 'Cherry']

    @pytest.mark.asyncio
    async def test_limit_capped(self, client: AsyncClient, auth_headers):
        response = await client.get('/api/content?limit=500', headers=auth_headers)

        assert response.status_code == 400


class TestSingleContent:

    @pytest.mark.asyncio
    async def test_get_own(self, client: AsyncClient, db_session, test_user, auth_headers):
        item = await add_content(db_session, test_user)

        response = await client.get(f'/api/content/{item.id}', headers=auth_headers)

        assert response.status_code == 200
        assert response.json()['data']['content']['id'] == item.id

    @pytest.mark.asyncio
    async def test_missing(self, client: AsyncClient, auth_headers):
        response = await client.get('/api/content/does-not-exist', headers=auth_headers)

        assert response.status_code == 404
        assert response.json()['code'] == 'NOT_FOUND'

    @pytest.mark.asyncio
    async def test_someone_elses(self, client: AsyncClient, db_session, auth_headers, user_factory):
        other = await user_factory()
        item = await add_content(db_session, other)

        response = await client.get(f'/api/content/{item.id}', headers=auth_headers)

        assert response.status_code == 403
        assert response.json()['message'] == 'You can only access your own resources'

    @pytest.mark.asyncio
    async def test_admin_sees_any(self, client: AsyncClient, db_session, test_user, admin_auth_headers):
        item = await add_content(db_session, test_user)

        response = await client.get(f'/api/content/{item.id}', headers=admin_auth_headers)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient, db_session, test_user, auth_headers):
        item = await add_content(db_session, test_user)

        response = await client.patch(f'/api/content/{item.id}', headers=auth_headers, json={
            'content': 'a b c',
            'status': 'published',
        })

        assert response.status_code == 200
        updated = response.json()['data']['content']
        assert response.json()['message'] == 'Content updated successfully'
        assert updated['wordCount'] == 3
        assert updated['status'] == 'published'
        assert updated['publishedAt'] is not None
        assert updated['title'] == 'Spring launch'

    @pytest.mark.asyncio
    async def test_update_someone_elses(self, client: AsyncClient, db_session, auth_headers, user_factory):
        item = await add_content(db_session, await user_factory())

        response = await client.patch(f'/api/content/{item.id}', headers=auth_headers, json={'title': 'Mine now'})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_toggle_favorite(self, client: AsyncClient, db_session, test_user, auth_headers):
        item = await add_content(db_session, test_user)

        first = await client.patch(f'/api/content/{item.id}/favorite', headers=auth_headers)
        second = await client.patch(f'/api/content/{item.id}/favorite', headers=auth_headers)

        assert first.json()['data']['content']['isFavorite'] is True
        assert first.json()['message'] == 'Content added to favorites'
        assert second.json()['data']['content']['isFavorite'] is False
        assert second.json()['message'] == 'Content removed from favorites'

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, db_session, test_user, auth_headers):
        item = await add_content(db_session, test_user)

        response = await client.delete(f'/api/content/{item.id}', headers=auth_headers)

        assert response.status_code == 200
        assert response.json()['message'] == 'Content deleted successfully'
        assert (await client.get(f'/api/content/{item.id}', headers=auth_headers)).status_code == 404


class TestExport:
    """Export formats follow the plan"""

    @pytest.mark.asyncio
    async def test_free_plan_cannot_export(self, client: AsyncClient, db_session, test_user, auth_headers):
        item = await add_content(db_session, test_user)

        response = await client.get(f'/api/content/export/{item.id}', headers=auth_headers)

        assert response.status_code == 402
        assert response.json()['message'] == 'basic plan or higher required for this feature'

    @pytest.mark.asyncio
    async def test_basic_plan_exports_txt(self, client: AsyncClient, db_session, user_factory, headers_for):
        user = await user_factory(plan=PlanType.BASIC)
        item = await add_content(db_session, user)

        response = await client.get(f'/api/content/export/{item.id}?format=txt', headers=headers_for(user))

        assert response.status_code == 200
        assert response.headers['content-type'].startswith('text/plain')
        assert f'filename="{item.id}.txt"' in response.headers['content-disposition']
        assert response.text.startswith('Spring launch\n\nOur spring collection is here.')

    @pytest.mark.asyncio
    async def test_basic_plan_cannot_export_html(self, client: AsyncClient, db_session, user_factory, headers_for):
        user = await user_factory(plan=PlanType.BASIC)
        item = await add_content(db_session, user)

        response = await client.get(f'/api/content/export/{item.id}?format=html', headers=headers_for(user))

        assert response.status_code == 402
        assert response.json()['details']['allowed'] == ['txt', 'docx', 'pdf']

    @pytest.mark.asyncio
    async def test_premium_plan_exports_html(self, client: AsyncClient, db_session, user_factory, headers_for):
        user = await user_factory(plan=PlanType.PREMIUM)
        item = await add_content(db_session, user, title='<Launch>')

        response = await client.get(f'/api/content/export/{item.id}?format=html', headers=headers_for(user))

        assert response.status_code == 200
        assert response.headers['content-type'].startswith('text/html')
        assert '<h1>&lt;Launch&gt;</h1>' in response.text

    @pytest.mark.asyncio
    async def test_unsupported_media(self, client: AsyncClient, db_session, user_factory, headers_for):
        user = await user_factory(plan=PlanType.BASIC)
        item = await add_content(db_session, user)

        response = await client.get(f'/api/content/export/{item.id}?format=pdf', headers=headers_for(user))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_export_someone_elses(self, client: AsyncClient, db_session, user_factory, headers_for):
        owner = await user_factory(plan=PlanType.BASIC)
        intruder = await user_factory(plan=PlanType.BASIC)
        item = await add_content(db_session, owner)

        response = await client.get(f'/api/content/export/{item.id}', headers=headers_for(intruder))

        assert response.status_code == 403
