# scripts/hubspot_check.py
# Sanity check your HubSpot private app token and base URL
import os, sys
import requests

API_BASE = os.getenv("HUBSPOT_BASE_URL", "https://api.hubapi.com").rstrip("/")
API_KEY = os.getenv("HUBSPOT_API_KEY")

def main():
    if not API_KEY:
        print("HUBSPOT_API_KEY is missing (check your .env).")
        sys.exit(1)

    try:
        r = requests.get(
            f"{API_BASE}/crm/v3/objects/contacts",
            params={"limit": 1, "properties": "email"},
            headers={"Authorization": f"Bearer {API_KEY}"},
            timeout=20,
        )
        print("HTTP:", r.status_code)
        if r.ok:
            results = r.json().get("results", [])
            print("Token OK. Contacts scope readable.")
            if results:
                print("Sample contact id:", results[0].get("id"))
        else:
            print("Body:", r.text[:500])
            print("Token check failed (missing crm.objects.contacts scope?).")
            sys.exit(2)
    except requests.RequestException as e:
        print("Request error:", repr(e))
        sys.exit(3)

if __name__ == "__main__":
    main()
