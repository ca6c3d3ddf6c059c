"""
gohan_core - Meal check client v1.2
===================================
Architecture: one asyncio event loop; worker threads only for blocking HTTP.

  constants.py    → Version, timeouts, spacing, wire names, messages
  config.py       → Paths, logging, config load/save, safe_print
  http_client.py  → HTTP session with pooling + SSL fix
  device.py       → Mobile / desktop classification from the user agent
  results.py      → RemoteCallResult, ErrorKind, ValidationFailure
  transport.py    → JsonpTransport (callback script, timeout, probe fallback)
  api.py          → RemoteService (login, menu, check state, user data)
  storage.py      → LocalStorage (JSON key/value file)
  session.py      → SessionStore + Strict / Grace lifetime strategies
  state.py        → CheckState, HomeState
  schedule.py     → ScheduleRow + ScheduleLoader (parallel, then sequential)
  rows.py         → RowController (optimistic toggle + rollback)
  notices.py      → NoticeBoard (auto-dismissing messages)
  auth.py         → AuthController (login form flow)
  app.py          → HomeApp + console front end
  runner.py       → main()
"""
