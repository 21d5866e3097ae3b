# backend/routes/serializers.py
"""Model -> JSON shapes shared by the namespaces (camelCase, like the frontend expects)."""
from decimal import Decimal


def iso(value):
    return value.isoformat() if value else None


def money(value):
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return value


def profile_to_dict(profile):
    return {
        "uid": profile.uid,
        "role": profile.role,
        "firstName": profile.first_name,
        "lastName": profile.last_name,
        "email": profile.email,
        "phone": profile.phone,
        "tzId": profile.tz_id,
        "dob": profile.dob,
        "emergency": profile.emergency,
        "lang": profile.lang,
        "phoneVerified": bool(profile.phone_verified),
        "groups": profile.groups or [],
        "createdAt": iso(profile.created_at),
    }


def event_to_dict(event, registered_count=None):
    data = {
        "id": event.id,
        "slug": event.slug,
        "title": event.title,
        "description": event.description,
        "itineraryMd": event.itinerary_md,
        "startAt": iso(event.start_at or event.date),
        "endAt": iso(event.end_at),
        "locationName": event.location_name,
        "lat": event.lat,
        "lng": event.lng,
        "maxParticipants": event.max_participants or event.capacity or 0,
        "priceNis": money(event.price_nis),
        "cover": event.cover,
        "publish": bool(event.publish),
        "status": event.status,
        "assignedTrainers": event.assigned_trainers or [],
        "groups": event.groups or [],
        "createdAt": iso(event.created_at),
        "completedAt": iso(event.completed_at),
    }
    if registered_count is not None:
        data["registeredCount"] = registered_count
    return data


def registration_to_dict(registration):
    return {
        "id": registration.id,
        "eventId": registration.event_id,
        "uid": registration.uid,
        "status": registration.status,
        "paymentStatus": registration.payment_status,
        "amountPaid": money(registration.amount_paid),
        "paymentDate": iso(registration.payment_date),
        "userName": registration.user_name,
        "userEmail": registration.user_email,
        "userPhone": registration.user_phone,
        "pickup": registration.pickup,
        "medical": registration.medical,
        "notes": registration.notes,
        "bundleId": registration.bundle_id,
        "bundleRegistration": bool(registration.bundle_registration),
        "bundleRegistrationId": registration.bundle_registration_id,
        "checkedIn": bool(registration.checked_in),
        "checkedInAt": iso(registration.checked_in_at),
        "checkedInBy": registration.checked_in_by,
        "registeredAt": iso(registration.registered_at),
    }


def bundle_to_dict(bundle):
    return {
        "id": bundle.id,
        "title": bundle.title,
        "description": bundle.description,
        "priceNis": money(bundle.price_nis),
        "eventIds": bundle.event_ids or [],
        "replacementEventIds": bundle.replacement_event_ids or [],
        "publish": bool(bundle.publish),
        "status": bundle.status,
        "validUntil": iso(bundle.valid_until),
        "createdBy": bundle.created_by,
        "createdAt": iso(bundle.created_at),
    }


def bundle_registration_to_dict(row):
    return {
        "id": row.id,
        "bundleId": row.bundle_id,
        "uid": row.uid,
        "status": row.status,
        "paymentStatus": row.payment_status,
        "paymentIntentId": row.payment_intent_id,
        "eventRegistrations": row.event_registrations or [],
        "skippedEvents": row.skipped_events or [],
        "registrationData": row.registration_data or {},
        "userName": row.user_name,
        "userEmail": row.user_email,
        "userPhone": row.user_phone,
        "bundleTitle": row.bundle_title,
        "bundlePrice": money(row.bundle_price),
        "createdAt": iso(row.created_at),
    }


def announcement_to_dict(announcement):
    return {
        "id": announcement.id,
        "title": announcement.title,
        "content": announcement.content,
        "targetGroups": announcement.target_groups or [],
        "type": announcement.type,
        "active": bool(announcement.active),
        "expiresAt": iso(announcement.expires_at),
        "createdBy": announcement.created_by,
        "emailSent": bool(announcement.email_sent),
        "emailSentAt": iso(announcement.email_sent_at),
        "emailStats": announcement.email_stats,
        "createdAt": iso(announcement.created_at),
    }


def whatsapp_group_to_dict(link):
    return {
        "id": link.id,
        "group": link.group,
        "groupName": link.group_name,
        "whatsappUrl": link.whatsapp_url,
        "isActive": bool(link.is_active),
    }


def fallen_soldier_to_dict(soldier):
    return {
        "id": soldier.id,
        "slug": soldier.slug,
        "name": soldier.name,
        "hebrewName": soldier.hebrew_name,
        "age": soldier.age,
        "unit": soldier.unit,
        "rank": soldier.rank,
        "dateOfFalling": soldier.date_of_falling,
        "imageUrl": soldier.image_url,
        "parentText": soldier.parent_text,
        "shortDescription": soldier.short_description,
        "order": soldier.order,
    }


def media_to_dict(item):
    return {
        "id": item.id,
        "ownerUid": item.owner_uid,
        "type": item.type,
        "title": item.title,
        "srcUrl": item.src_url,
        "thumbUrl": item.thumb_url,
        "category": item.category,
        "tags": item.tags or [],
        "createdAt": iso(item.created_at),
    }
