import pytest

from direct_messages.services.chat_service import ChatService
from fakes import InMemoryMessageRepository, InMemoryUserRepository


@pytest.fixture
def message_repo():
    return InMemoryMessageRepository()


@pytest.fixture
def user_repo():
    return InMemoryUserRepository({"alice": "Alice", "bob": "Bob", "carol": "Carol"})


@pytest.fixture
def service(message_repo, user_repo):
    return ChatService(message_repo, user_repo, max_body_length=50)
