#!/usr/bin/env python3

import asyncio
import sys
import os

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from app.database import create_tables, AsyncSessionLocal
from app.exceptions import Conflict
from app.repositories.user_repository import UserRepository
from app.services.auth_service import AuthService
from app.services.chat_service import ChatService
from app.services.friend_service import FriendService

USERS = [
    {"name": "Alice", "email": "alice@example.com"},
    {"name": "Bob", "email": "bob@example.com"},
    {"name": "Charlie", "email": "charlie@example.com"},
    {"name": "Diana", "email": "diana@example.com"},
]

# (sender, receiver) by index into USERS; all get accepted
FRIENDSHIPS = [(0, 1), (0, 2), (1, 3)]

async def create_test_users():
    async with AsyncSessionLocal() as db:
        user_repo = UserRepository(db)

        created_users = []
        for user_data in USERS:
            existing_user = await user_repo.get_by_email(user_data["email"])
            if not existing_user:
                user = await user_repo.create(**user_data)
                created_users.append(user)
                print(f"Created user: {user.name} (ID: {user.id})")
            else:
                created_users.append(existing_user)
                print(f"User {user_data['name']} exists (ID: {existing_user.id})")

        return created_users

async def create_test_friendships(users):
    async with AsyncSessionLocal() as db:
        friend_service = FriendService(db)

        for sender_index, receiver_index in FRIENDSHIPS:
            sender, receiver = users[sender_index], users[receiver_index]
            try:
                request = await friend_service.send_friend_request(sender.id, receiver.id)
            except Conflict as e:
                print(f"Skipping {sender.name} -> {receiver.name}: {e.message}")
                continue
            await friend_service.accept_friend_request(request.id, receiver.id)
            print(f"{sender.name} and {receiver.name} are now friends")

async def create_test_messages(users):
    alice, bob = users[0], users[1]
    async with AsyncSessionLocal() as db:
        chat_service = ChatService(db)
        await chat_service.send_message(alice.id, bob.id, "Hi Bob!")
        await chat_service.send_message(bob.id, alice.id, "Hey Alice, how are you?")
        print("Created sample conversation between Alice and Bob")

async def main():
    await create_tables()
    users = await create_test_users()
    await create_test_friendships(users)
    await create_test_messages(users)

    async with AsyncSessionLocal() as db:
        auth_service = AuthService(db)
        print("\nBearer tokens for manual testing:")
        for user in users:
            print(f"  {user.name}: {auth_service.issue_token(user)}")

if __name__ == "__main__":
    asyncio.run(main())
