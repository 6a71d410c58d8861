#!/usr/bin/env python3
"""REST API client demonstration.

This example shows how to use the LeadHub REST API with httpx.
First, start Qdrant and the server in other terminals:

    docker run -p 6333:6333 qdrant/qdrant
    uvicorn leadhub.api:app --reload

Then run this script:

    python examples/api_client.py

The API provides (among others):
    POST /api/v1/webhooks       - Register a webhook
    POST /api/v1/leads          - Capture a lead (fans out to webhooks)
    GET  /api/v1/webhooks/logs  - Delivery attempts, most recent first
    GET  /api/v1/health         - Health check
"""

import asyncio

import httpx

BASE_URL = "http://localhost:8000/api/v1"

# Any endpoint that accepts POSTs works; httpbin echoes the body back
WEBHOOK_URL = "https://httpbin.org/post"


async def main() -> None:
    """Run the API client demo."""
    print("=" * 60)
    print("LeadHub REST API Demo")
    print("=" * 60)
    print(f"\nConnecting to {BASE_URL}...")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # =====================================================================
        # Health Check
        # =====================================================================
        print("\nChecking API health...")
        try:
            resp = await client.get(f"{BASE_URL}/health")
            resp.raise_for_status()
            health = resp.json()
            print(f"  Status: {health['status']}")
            print(f"  Version: {health['version']}")
            print(f"  Pending deliveries: {health['pending_deliveries']}")
        except httpx.ConnectError:
            print("\nCould not connect to API server!")
            print("   Start the server with: uvicorn leadhub.api:app --reload")
            return

        # =====================================================================
        # Webhooks: one receives everything, one only the phone
        # =====================================================================
        print("\nRegistering webhooks...")

        webhooks = [
            {"name": "CRM (all fields)", "url": WEBHOOK_URL},
            {
                "name": "WhatsApp bot (phone only)",
                "url": WEBHOOK_URL,
                "send_fields": ["phone", "campaign"],
                "custom_fields": [{"name": "campaign", "default_value": "spring-sale"}],
            },
        ]
        webhook_ids = []
        for webhook in webhooks:
            resp = await client.post(f"{BASE_URL}/webhooks", json=webhook)
            resp.raise_for_status()
            created = resp.json()
            webhook_ids.append(created["id"])
            print(f"  Registered {created['name']} ({created['id']})")

        # =====================================================================
        # Leads: unknown keys are kept and forwarded
        # =====================================================================
        print("\nCapturing a lead...")

        resp = await client.post(
            f"{BASE_URL}/leads",
            json={
                "phone": "+55 11 99999-9999",
                "source": "landing-page-produtos",
                "name": "Ana Souza",
                "email": "ana@example.com",
                "utm_source": "google",
            },
        )
        resp.raise_for_status()
        lead = resp.json()
        print(f"  Lead {lead['id']} captured (returned before delivery finished)")

        # A malformed request is rejected with a 400
        resp = await client.post(f"{BASE_URL}/leads", json={"source": "form"})
        print(f"  Lead without phone -> {resp.status_code}: {resp.json()['error']['message']}")

        # =====================================================================
        # Delivery log
        # =====================================================================
        print("\nWaiting for deliveries...")
        await asyncio.sleep(3)

        resp = await client.get(f"{BASE_URL}/webhooks/logs", params={"lead_id": lead["id"]})
        resp.raise_for_status()
        for log in resp.json()["logs"]:
            outcome = log["http_status"] or log["error_message"]
            print(f"  {log['webhook_id']} attempt {log['attempt']}: {log['status']} ({outcome})")

        # =====================================================================
        # Counters and cleanup
        # =====================================================================
        print("\nWebhook counters:")
        for webhook_id in webhook_ids:
            resp = await client.get(f"{BASE_URL}/webhooks/{webhook_id}")
            data = resp.json()
            print(f"  {data['name']}: {data['success_count']} ok, {data['failure_count']} failed")
            await client.delete(f"{BASE_URL}/webhooks/{webhook_id}")

    print(f"\n{'=' * 60}")
    print("API demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
