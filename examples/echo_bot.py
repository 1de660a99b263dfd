"""
Echo Bot Example - Echoes back every message received.

This is a simple example bot that demonstrates:
- QR code login
- Message event handling with decorators for friends, groups and discussions
- Sending messages
- Reporting errors raised while polling

Usage:
    python echo_bot.py --qr-file qrcode.png
"""

import asyncio
import argparse
import logging
from pathlib import Path

from smartqq_client import ClientConfig, SmartQQClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main():
    """Run the echo bot."""
    parser = argparse.ArgumentParser(description="Echo bot for SmartQQ")
    parser.add_argument(
        "--qr-file",
        default="qrcode.png",
        help="Where to write the login QR code (default: qrcode.png)",
    )
    parser.add_argument(
        "--https",
        action="store_true",
        help="Use HTTPS for the poll and send endpoints",
    )

    args = parser.parse_args()
    config = ClientConfig(https_chat_message=args.https)

    async with SmartQQClient(config) as client:
        message_count = 0

        @client.on_message
        async def handle_message(message):
            """Handle private messages."""
            nonlocal message_count
            message_count += 1
            logger.info(f"[{message_count}] Message from {message.user_id}: {message.content}")
            try:
                await client.send_message_to_friend(message.user_id, f"Echo: {message.content}")
            except Exception as e:
                logger.error(f"Failed to send response: {e}")

        @client.on_group_message
        async def handle_group_message(message):
            """Echo group messages starting with '!echo'."""
            if not message.content.startswith("!echo "):
                return
            try:
                await client.send_message_to_group(message.group_id, message.content[6:])
            except Exception as e:
                logger.error(f"Failed to send group response: {e}")

        @client.on_discuss_message
        async def handle_discuss_message(message):
            """Echo discussion messages starting with '!echo'."""
            if not message.content.startswith("!echo "):
                return
            try:
                await client.send_message_to_discuss(message.discuss_id, message.content[6:])
            except Exception as e:
                logger.error(f"Failed to send discussion response: {e}")

        @client.on_exception
        def handle_exception(error, origin):
            logger.warning(f"Polling error ({origin.value}): {error}")

        while True:
            qr_path = Path(args.qr_file)
            qr_path.write_bytes(await client.get_qr_code())
            logger.info(f"Scan {qr_path.resolve()} with the mobile app to log in")

            expired = await client.login()
            if not expired:
                break
            logger.info("QR code expired, fetching a new one")

        account = await client.get_account_info()
        logger.info(f"Logged in as {account.nick} ({client.self_user_id})")

        # Keep running
        logger.info("Echo bot started. Waiting for messages...")
        await asyncio.Event().wait()


if __name__ == "__main__":
    asyncio.run(main())
