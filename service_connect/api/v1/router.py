from fastapi import APIRouter

from service_connect.api.v1 import auth, conversations, listings, messages, users

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(listings.router)
api_router.include_router(conversations.router)
api_router.include_router(messages.router)
