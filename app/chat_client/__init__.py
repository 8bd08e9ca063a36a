"""
Python client for the BloxMarket chat service.

Modules:
    events: Typed realtime events and REST payload shapes
    api: ChatAPIClient for the REST endpoints
    socket: SocketService for the realtime channel
    notifications: UnreadCountNotifier for the unread badge
    state: ChatList, ChatWindow, TypingIndicator, CreateChatDialog

Note:
    Submodules are not imported here; import what you need directly,
    e.g. ``from chat_client.api import ChatAPIClient``.
"""
