"""Telegram bot — saves incoming messages as memos."""

import asyncio
import json
import logging
import os
from typing import Optional

from telegram import (
    BotCommand,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
    MessageOrigin,
    ReplyParameters,
    Update,
)
from telegram.constants import ParseMode
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from .cache import GroupCache
from .client import Memo, MemosClient
from .config import MemogramSettings
from .errors import MemosAuthError, PersistenceError, classify_error
from .formatting import annotations_from_entities, format_content
from .store import CredentialStore
from .utils import (
    build_memo_url,
    detect_content_type,
    get_name_parent_tokens,
    is_user_allowed,
    parse_allowed_usernames,
)

logger = logging.getLogger("memogram.bot")

START_HINT = "Please start the bot with /start <access_token>"
SEARCH_PAGE_SIZE = 10
# Telegram rejects messages longer than this
MAX_MESSAGE_LENGTH = 4096

CALLBACK_ACTIONS = ("public", "protected", "private", "pin")


def forward_header(origin: Optional[MessageOrigin]) -> Optional[str]:
    """Describe where a forwarded message came from, as a Markdown line."""
    if origin is None:
        return None

    name, username = "", ""
    if origin.type == MessageOrigin.USER:
        user = origin.sender_user
        name = f"{user.first_name} {user.last_name}" if user.last_name else user.first_name
        username = user.username or ""
    elif origin.type == MessageOrigin.HIDDEN_USER:
        name = origin.sender_user_name or "Hidden User"
    elif origin.type == MessageOrigin.CHAT:
        name = origin.sender_chat.title or ""
        username = origin.sender_chat.username or ""
    elif origin.type == MessageOrigin.CHANNEL:
        name = origin.chat.title or ""
        username = origin.chat.username or ""

    if username:
        return f"Forwarded from [{name}](https://t.me/{username})"
    return f"Forwarded from {name}"


def message_content(message: Message) -> str:
    """Markdown body of a message: its caption if present, else its text."""
    if message.caption:
        content, entities = message.caption, message.caption_entities
    else:
        content, entities = message.text or "", message.entities
    if entities:
        content = format_content(content, annotations_from_entities(entities))

    header = forward_header(message.forward_origin)
    if header:
        content = f"{header}\n{content}"
    return content


def message_attachments(message: Message) -> list[tuple[str, Optional[str], Optional[str]]]:
    """Files attached to a message as ``(file_id, file_name, mime_type)``."""
    files = []
    if message.document:
        files.append((message.document.file_id, message.document.file_name, message.document.mime_type))
    if message.voice:
        files.append((message.voice.file_id, None, message.voice.mime_type))
    if message.video:
        files.append((message.video.file_id, message.video.file_name, message.video.mime_type))
    if message.photo:
        # Largest size is last
        files.append((message.photo[-1].file_id, None, None))
    return files


def memo_keyboard(memo: Memo) -> InlineKeyboardMarkup:
    """Inline buttons to change a memo's visibility or pin it."""
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("Public", callback_data=f"public {memo.name}"),
        InlineKeyboardButton("Private", callback_data=f"private {memo.name}"),
        InlineKeyboardButton("Pin", callback_data=f"pin {memo.name}"),
    ]])


def search_filter(words: str, user_name: Optional[str]) -> str:
    """Memos CEL filter matching ``words``, limited to the user's own memos when known."""
    query = f"content.contains({json.dumps(words, ensure_ascii=False)})"
    if user_name:
        try:
            tokens = get_name_parent_tokens(user_name, "users/")
            return f"{query} && creator_id == {int(tokens[0])}"
        except ValueError:
            pass
    return query


class MemogramBot:
    """Telegram bot adapter for Memogram."""

    def __init__(
        self,
        settings: MemogramSettings,
        client: MemosClient,
        store: CredentialStore,
        cache: GroupCache,
    ):
        self.settings = settings
        self.client = client
        self.store = store
        self.cache = cache
        self.allowed_usernames = parse_allowed_usernames(settings.allowed_usernames)
        self.app: Optional[Application] = None
        self.instance_url: Optional[str] = None

    @property
    def base_url(self) -> str:
        return self.instance_url or self.settings.server_addr

    def build_application(self) -> Application:
        builder = Application.builder().token(self.settings.bot_token).concurrent_updates(True)
        if self.settings.bot_proxy_addr:
            proxy = self.settings.bot_proxy_addr.rstrip("/")
            builder = builder.base_url(f"{proxy}/bot").base_file_url(f"{proxy}/file/bot")
        app = builder.build()

        app.add_handler(CommandHandler("start", self._cmd_start))
        app.add_handler(CommandHandler("search", self._cmd_search))
        app.add_handler(CommandHandler("logout", self._cmd_logout))
        app.add_handler(MessageHandler(
            filters.UpdateType.MESSAGE & ~filters.COMMAND,
            self._handle_message,
        ))
        app.add_handler(CallbackQueryHandler(self._handle_callback))
        app.add_error_handler(self._handle_error)
        return app

    async def start(self):
        """Start polling Telegram and the media group sweep."""
        try:
            profile = await self.client.get_instance_profile()
            logger.info(f"Memos instance profile: version={profile.version} url={profile.instance_url}")
            self.instance_url = profile.instance_url or None
        except Exception as e:
            logger.warning(f"Failed to get instance profile: {e}")

        self.cache.start()
        self.app = self.build_application()

        logger.info("Starting Telegram bot...")
        await self.app.initialize()
        await self.app.start()
        await self.app.updater.start_polling(drop_pending_updates=True)

        try:
            await self.app.bot.set_my_commands([
                BotCommand("start", "Start the bot with access token"),
                BotCommand("search", "Search for the memos"),
                BotCommand("logout", "Forget your access token"),
            ])
        except Exception as e:
            logger.error(f"Failed to set bot commands: {e}")

        logger.info("Memogram started.")

    async def stop(self):
        """Stop polling and background tasks."""
        if self.app:
            await self.app.updater.stop()
            await self.app.stop()
            await self.app.shutdown()
            self.app = None
        await self.cache.stop()
        logger.info("Memogram stopped.")

    # ── Access ───────────────────────────────────────────────

    async def _check_access(self, update: Update) -> bool:
        """Reply with an error and return False if the sender may not use the bot."""
        user = update.effective_user
        if user is None or update.message is None:
            return False
        if is_user_allowed(user.username, self.allowed_usernames):
            return True
        if not user.username:
            await update.message.reply_text("Error: your account must have a username to use this bot")
        else:
            await update.message.reply_text(f"Error: your account {user.username} is not allowed to use this bot")
        logger.info(f"Rejected message from {user.username or user.id}")
        return False

    # ── Commands ─────────────────────────────────────────────

    async def _cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Link a Memos access token to the sender."""
        if not await self._check_access(update):
            return
        token = " ".join(context.args or []).strip()
        if not token:
            await update.message.reply_text("Usage: /start <access_token>")
            return

        try:
            user = await self.client.get_current_user(token)
        except MemosAuthError:
            await update.message.reply_text("Invalid access token")
            return
        except Exception as e:
            logger.error(f"Failed to validate access token: {e}", exc_info=True)
            await update.message.reply_text(classify_error(e))
            return

        greeting = f"Hello {user.display_name or user.username}!"
        try:
            await asyncio.to_thread(self.store.set, update.effective_user.id, token)
        except PersistenceError as e:
            # Token is already active in memory; it just won't survive a restart
            logger.error(f"Access token for {update.effective_user.id} not persisted: {e}")
            greeting += "\n" + classify_error(e)
        await update.message.reply_text(greeting)

    async def _cmd_logout(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Forget the sender's access token."""
        if not await self._check_access(update):
            return
        try:
            removed = await asyncio.to_thread(self.store.delete, update.effective_user.id)
        except PersistenceError as e:
            await update.message.reply_text(classify_error(e))
            return
        await update.message.reply_text("Access token removed." if removed else "You are not logged in.")

    async def _cmd_search(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Search the sender's memos."""
        if not await self._check_access(update):
            return
        words = " ".join(context.args or []).strip()
        if not words:
            await update.message.reply_text("Usage: /search <words>")
            return
        token = self.store.get(update.effective_user.id)
        if not token:
            await update.message.reply_text(START_HINT)
            return

        try:
            user = await self.client.get_current_user(token)
        except MemosAuthError:
            await update.message.reply_text("Invalid access token")
            return
        except Exception as e:
            logger.error(f"Failed to get current user: {e}", exc_info=True)
            await update.message.reply_text(classify_error(e))
            return

        try:
            memos = await self.client.list_memos(
                token, filter=search_filter(words, user.name), page_size=SEARCH_PAGE_SIZE,
            )
        except Exception as e:
            logger.error(f"Failed to search memos: {e}", exc_info=True)
            await update.message.reply_text(classify_error(e))
            return

        if not memos:
            await update.message.reply_text("No memos found for the specified search criteria.")
            return
        for memo in memos:
            await update.message.reply_text(f"{memo.name}\n{memo.content}"[:MAX_MESSAGE_LENGTH])

    # ── Messages ─────────────────────────────────────────────

    async def _handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Save a text or media message as a memo."""
        message = update.message
        if message is None or update.effective_user is None:
            return
        if not await self._check_access(update):
            return

        user_id = update.effective_user.id
        token = self.store.get(user_id)
        if not token:
            await message.reply_text(START_HINT)
            return

        content = message_content(message)
        attachments = message_attachments(message)
        if not content and not attachments:
            await message.reply_text("Please input memo content")
            return

        group_id = message.media_group_id or ""
        created = False

        async def create() -> Memo:
            nonlocal created
            memo = await self.client.create_memo(token, content)
            created = True
            return memo

        try:
            if group_id:
                memo = await self.cache.get_or_create(group_id, create)
            else:
                memo = await create()
        except Exception as e:
            logger.error(f"Failed to create memo for {user_id}: {e}", exc_info=True)
            await message.reply_text("Failed to create memo")
            return

        for file_id, file_name, mime_type in attachments:
            await self._save_attachment(message, context, token, memo, file_id, file_name, mime_type)

        if not created:
            # Later parts of an album only add attachments
            logger.debug(f"Media group {group_id}: attached to {memo.name}")
            return

        try:
            url = build_memo_url(self.base_url, memo.name)
        except ValueError as e:
            logger.error(f"Failed to extract memo UID: {e}")
            await message.reply_text("Failed to save memo")
            return

        await message.reply_text(
            f"Content saved as {memo.visibility} with [{memo.name}]({url})",
            parse_mode=ParseMode.MARKDOWN,
            disable_notification=True,
            reply_parameters=ReplyParameters(message_id=message.message_id),
            reply_markup=memo_keyboard(memo),
        )

    async def _save_attachment(
        self,
        message: Message,
        context: ContextTypes.DEFAULT_TYPE,
        token: str,
        memo: Memo,
        file_id: str,
        file_name: Optional[str],
        mime_type: Optional[str],
    ):
        """Download a Telegram file and attach it to ``memo``."""
        try:
            tg_file = await context.bot.get_file(file_id)
            data = await tg_file.download_as_bytearray()
        except Exception as e:
            logger.error(f"Failed to get file {file_id}: {e}", exc_info=True)
            await message.reply_text(f"Error: failed to get file: {e}")
            return

        filename = file_name or os.path.basename(tg_file.file_path or "") or file_id
        content_type = detect_content_type(data, filename=filename, hint=mime_type)
        try:
            await self.client.create_attachment(token, filename, content_type, bytes(data), memo.name)
        except Exception as e:
            logger.error(f"Failed to save attachment {filename}: {e}", exc_info=True)
            await message.reply_text(f"Error: failed to save attachment: {classify_error(e)}")

    # ── Callbacks ────────────────────────────────────────────

    async def _handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle the visibility / pin buttons under a saved memo."""
        query = update.callback_query
        token = self.store.get(query.from_user.id)
        if not token:
            await query.answer(START_HINT, show_alert=True)
            return

        parts = (query.data or "").split(" ")
        if len(parts) != 2:
            await query.answer("Invalid command", show_alert=True)
            return
        action, memo_name = parts
        if action not in CALLBACK_ACTIONS:
            await query.answer("Unknown action", show_alert=True)
            return

        try:
            memo = await self.client.get_memo(token, memo_name)
        except Exception as e:
            logger.info(f"Callback for missing memo {memo_name}: {e}")
            await query.answer(f"Memo {memo_name} not found", show_alert=True)
            return

        if action == "pin":
            memo.pinned = not memo.pinned
        else:
            memo.visibility = action.upper()

        try:
            memo = await self.client.update_memo(token, memo, ["visibility", "pinned"])
            url = build_memo_url(self.base_url, memo.name)
        except Exception as e:
            logger.error(f"Failed to update memo {memo_name}: {e}", exc_info=True)
            await query.answer("Failed to update memo", show_alert=True)
            return

        pinned_marker = " 📌" if memo.pinned else ""
        await query.edit_message_text(
            f"Memo updated as {memo.visibility} with [{memo.name}]({url}){pinned_marker}",
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=memo_keyboard(memo),
        )
        await query.answer("Memo updated")

    async def _handle_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        """Handle errors."""
        logger.error(f"Telegram error: {context.error}", exc_info=context.error)
