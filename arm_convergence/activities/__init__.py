"""Durable Functions activity functions.

Each activity performs a single unit of work within the orchestration:
- fetch_resource_status: Read a resource's status once
- reissue_delete: Re-send a delete blocked by nested resources
"""
