"""
Live chat / agent-presence engine.

- models: presence, rooms, messages, inbox items, pages
- store: ChatStore interface with memory and PostgreSQL implementations
- presence: global admin online flag with broadcast on every set
- answers: quick replies -> optional Wikipedia -> cached site search
- events / hub: realtime event contract and channel fan-out
- transcript: plain-text transcripts for forwarding
- runtime: lifespan wiring stored on app.state.agent
"""
