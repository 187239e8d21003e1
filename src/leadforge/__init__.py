"""LeadForge artifact generation service.

This package turns local-business prospect records into marketing artifacts
(websites, content kits, campaign dashboards). Generation goes through a
backend website endpoint or an LLM gateway, with category templates as the
fallback. Builds run as persisted background tasks and artifacts are previewed,
edited, exported and deployed through the artifact viewer.
"""

__version__ = "0.1.0"
