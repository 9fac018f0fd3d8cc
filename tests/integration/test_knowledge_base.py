"""
Integration tests for knowledge base listings and gated downloads.
"""

import pytest
import pytest_asyncio

from licitadesk.core.exceptions import AuthorizationError, NotFoundError
from tests.factories import KnowledgeBaseFactory, ProfileFactory


@pytest_asyncio.fixture
async def premium_article(db_session):
    category = KnowledgeBaseFactory.category(is_premium=True, name="Modelos de Recurso")
    db_session.add(category)
    await db_session.flush()
    article = KnowledgeBaseFactory.article(category.id)
    db_session.add(article)
    await db_session.commit()
    return article


class TestListing:
    @pytest.mark.asyncio
    async def test_members_see_published_articles_only(self, db_session, services, admin, member):
        category = KnowledgeBaseFactory.category()
        db_session.add(category)
        await db_session.flush()
        published = KnowledgeBaseFactory.article(category.id)
        draft = KnowledgeBaseFactory.article(category.id, is_published=False)
        db_session.add_all([published, draft])
        await db_session.commit()

        member_view = await services.knowledge_base.list_articles(db_session, member, category.id)
        staff_view = await services.knowledge_base.list_articles(db_session, admin, category.id)

        assert [a.id for a in member_view] == [published.id]
        assert {a.id for a in staff_view} == {published.id, draft.id}


class TestDownloads:
    @pytest.mark.asyncio
    async def test_subscriber_gets_a_signed_url(self, db_session, services, storage, member, premium_article):
        url = await services.knowledge_base.get_article_file_url(db_session, member, premium_article.id)

        assert url == "https://files.test/kb/manual.pdf?expires=3600"
        assert storage.signed == [("kb/manual.pdf", 3600)]
        await db_session.refresh(premium_article)
        assert premium_article.views == 1

    @pytest.mark.asyncio
    async def test_free_user_is_offered_a_trial(
        self, db_session, services, organization, load_actor, premium_article
    ):
        profile = ProfileFactory.create(access_authorized=True, organization_id=organization.id)
        db_session.add(profile)
        await db_session.commit()
        actor = await load_actor(profile)

        with pytest.raises(AuthorizationError) as exc_info:
            await services.knowledge_base.get_article_file_url(db_session, actor, premium_article.id)
        assert exc_info.value.upsell == "trial"

    @pytest.mark.asyncio
    async def test_unpublished_article_is_hidden_from_members(
        self, db_session, services, storage, admin, member
    ):
        category = KnowledgeBaseFactory.category()
        db_session.add(category)
        await db_session.flush()
        article = KnowledgeBaseFactory.article(category.id, is_published=False)
        db_session.add(article)
        await db_session.commit()

        with pytest.raises(NotFoundError):
            await services.knowledge_base.get_article_file_url(db_session, member, article.id)
        assert await services.knowledge_base.get_article_file_url(db_session, admin, article.id)

    @pytest.mark.asyncio
    async def test_article_without_file(self, db_session, services, member):
        category = KnowledgeBaseFactory.category()
        db_session.add(category)
        await db_session.flush()
        article = KnowledgeBaseFactory.article(category.id, file_url=None)
        db_session.add(article)
        await db_session.commit()

        with pytest.raises(NotFoundError):
            await services.knowledge_base.get_article_file_url(db_session, member, article.id)
