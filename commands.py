from app.cdvote_auth.model.enums import UserRole
from app.cdvote_auth.utils import create_user, update_user
import asyncio
import sys

async def run_command():
    method = sys.argv[1] if len(sys.argv) > 1 else None
    methods = {
        "create_admin": create_admin,
        "update_admin": update_admin,
    }
    if method not in methods:
        print(f"Unknown method: {method}. Available methods: {', '.join(methods.keys())}")
        return

    await methods[method](*sys.argv[2:])

async def create_admin(username: str, password: str, role: str = UserRole.admin.value):
    await create_user(username, password, role=UserRole(role))
    print(f"Admin user {username} created successfully")

async def update_admin(username: str, password: str):
    await update_user(username, password)
    print(f"Password of {username} updated successfully")

if __name__ == "__main__":
    asyncio.run(run_command())
