# Supabase tables: squads, squad_members, messages
# This file documents the expected database schema
# Actual operations are handled through the row accessor in service.py

"""
Expected Supabase table structure:

squads:
- id: uuid (primary key)
- name: text (not null)
- game: text (not null) - activity label
- description: text (nullable)
- invite_code: text (not null, unique) - 6 chars, stored upper case
- owner_id: uuid (foreign key to profiles.id, not null)
- member_count: integer (nullable) - denormalised counter, fallback only
- created_at: timestamp (default: now())

squad_members:
- id: uuid (primary key)
- squad_id: uuid (foreign key to squads.id, not null)
- user_id: uuid (foreign key to profiles.id, not null)
- role: text (not null, default: 'member') - values: owner, member
- created_at: timestamp (default: now())
- unique constraint on (squad_id, user_id)

messages (system messages only are written by this service):
- id: uuid (primary key)
- squad_id: uuid (foreign key to squads.id, not null)
- content: text (not null)
- is_system_message: boolean (default: false)
- created_at: timestamp (default: now())
"""
