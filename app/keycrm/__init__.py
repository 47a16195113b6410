# KeyCRM gateway: HTTP client, request payloads and order mapping
