"""
Scheduling Domain

Availability computation and atomic booking for therapist sessions.

Structure:
```
domain/scheduling/
├── types.py                # Plain value types (no ORM)
├── time_calculator.py      # Zone-aware time helpers
├── slot_generator.py       # Rules + exceptions -> slots for one day
├── repository.py           # SchedulingRepository (reads, row lock, writes)
├── availability_service.py # Available dates / slots
├── state_machine.py        # Booking status transitions
├── policies.py             # Who may act on a booking
├── booking_service.py      # Create, reschedule, cancel, status
├── integration_service.py  # Post-commit Meet links and e-mails
├── schemas.py              # Request/response models
└── router.py               # Endpoints
```

Import the router from ``.router``; this package does not re-export it so
``types`` can be imported without pulling in FastAPI dependencies.
"""
