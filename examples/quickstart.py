#!/usr/bin/env python3
"""Quickstart demo - lead capture with webhook fan-out.

Demonstrates:
- create_webhook(): Register destinations with field selection
- create_lead(): Persist a lead and notify every active webhook
- Retries with exponential backoff for a failing destination
- list_delivery_logs(): One row per attempt, most recent first

Prerequisites:
    - Qdrant running: docker run -p 6333:6333 qdrant/qdrant
"""

import asyncio
import logging

from leadhub.config import Settings
from leadhub.service import LeadHubService

# Keep the demo output to our own prints
logging.getLogger("httpx").setLevel(logging.WARNING)

# httpbin echoes the POST back; port 9 on localhost refuses connections
GOOD_URL = "https://httpbin.org/post"
BROKEN_URL = "http://127.0.0.1:9/webhook"


async def main() -> None:
    print("=" * 70)
    print("LeadHub Quickstart Demo")
    print("=" * 70)

    settings = Settings(collection_prefix="leadhub_quickstart", webhook_retry_base_seconds=0.5)

    async with LeadHubService.create(settings) as hub:
        # Start from a clean slate
        for webhook in await hub.list_webhooks():
            await hub.delete_webhook(webhook.id)

        # =====================================================================
        # 1. WEBHOOKS
        # =====================================================================
        print("\n1. REGISTERING WEBHOOKS")
        print("-" * 70)

        crm = await hub.create_webhook(name="CRM", url=GOOD_URL)
        bot = await hub.create_webhook(
            name="WhatsApp bot",
            url=GOOD_URL,
            send_fields=["phone", "campaign"],
            custom_fields=[{"name": "campaign", "default_value": "spring-sale"}],
        )
        broken = await hub.create_webhook(name="Legacy ERP", url=BROKEN_URL)
        paused = await hub.create_webhook(name="Paused", url=GOOD_URL, is_active=False)

        for webhook in (crm, bot, broken, paused):
            state = "active" if webhook.is_active else "inactive"
            fields = ", ".join(webhook.send_fields) or "all fields"
            print(f"  {webhook.name:<14} {state:<9} {fields}")

        # =====================================================================
        # 2. LEAD CAPTURE
        # =====================================================================
        print("\n2. CAPTURING A LEAD")
        print("-" * 70)

        lead = await hub.create_lead(
            phone="+55 11 99999-9999",
            source="landing-page-produtos",
            name="Ana Souza",
            email="ana@example.com",
            extra={"utm_source": "google"},
        )
        print(f"  Lead {lead.id} stored; {hub.dispatcher.pending_count} delivery task(s) running")

        # =====================================================================
        # 3. DELIVERY
        # =====================================================================
        print("\n3. WAITING FOR DELIVERY CHAINS")
        print("-" * 70)
        print(f"  Up to {hub.dispatcher.max_attempts} attempts per webhook...")

        await hub.dispatcher.drain()

        names = {w.id: w.name for w in (crm, bot, broken, paused)}
        for log in reversed(await hub.list_delivery_logs(lead_id=lead.id)):
            detail = log.http_status or log.error_message
            print(
                f"  {names[log.webhook_id]:<14} attempt {log.attempt}/{log.max_attempts}"
                f"  {log.status:<9} {detail}"
            )

        # =====================================================================
        # 4. COUNTERS
        # =====================================================================
        print("\n4. WEBHOOK COUNTERS")
        print("-" * 70)

        for webhook in await hub.list_webhooks():
            print(
                f"  {webhook.name:<14} success={webhook.success_count}"
                f" failure={webhook.failure_count}"
            )

        # =====================================================================
        # 5. REDELIVERY to an inactive webhook
        # =====================================================================
        print("\n5. MANUAL REDELIVERY")
        print("-" * 70)

        await hub.redeliver(paused.id, lead.id)
        await hub.dispatcher.drain()
        logs = await hub.list_delivery_logs(webhook_id=paused.id)
        print(f"  {paused.name}: {logs[0].status} on attempt {logs[0].attempt}")

    print(f"\n{'=' * 70}")
    print("Quickstart complete!")
    print("=" * 70)


if __name__ == "__main__":
    asyncio.run(main())
