def _iso(value):
    return value.isoformat() if value else None


def serialize_user(user):
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'role': user.role
    }


def serialize_rank(rank):
    return {
        'id': rank.id,
        'name': rank.name,
        'order': rank.order,
        'image_url': rank.image_url,
        'min_age': rank.min_age,
        'grants_instructor': rank.grants_instructor
    }


def serialize_rank_info(rank):
    if rank is None:
        return None
    return {'id': rank.id, 'name': rank.name, 'order': rank.order}


def serialize_transition(t):
    return {
        'id': t.id,
        'from_rank_id': t.from_rank_id,
        'to_rank_id': t.to_rank_id,
        'youth_required': t.youth_required,
        'adult_required': t.adult_required,
        'min_days': t.min_days
    }


def serialize_student(s, detail=False):
    data = {
        'id': s.id,
        'first_name': s.first_name,
        'last_name': s.last_name,
        'full_name': s.full_name,
        'birth_date': _iso(s.birth_date),
        'gender': s.gender,
        'phone': s.phone,
        'email': s.email,
        'attendance_reset_on': _iso(s.attendance_reset_on),
        'account_id': s.account_id,
        'active': s.active
    }
    if detail:
        data['guardians'] = [serialize_guardian(g) for g in s.guardians]
        data['classes'] = [{'id': e.training_class.id, 'name': e.training_class.name}
                           for e in s.enrollments]
    return data


def serialize_guardian(g):
    return {
        'id': g.id,
        'student_id': g.student_id,
        'name': g.name,
        'relation': g.relation,
        'phone': g.phone,
        'email': g.email
    }


def serialize_class(c):
    return {
        'id': c.id,
        'name': c.name,
        'created_on': _iso(c.created_on),
        'min_age': c.min_age,
        'max_age': c.max_age,
        'total_sessions': c.total_sessions,
        'instructor': serialize_user(c.instructor) if c.instructor else None,
        'coordinator_id': c.coordinator_id,
        'active': c.active,
        'student_count': len(c.enrollments)
    }


def serialize_attendance(r):
    return {
        'id': r.id,
        'student_id': r.student_id,
        'student_name': r.student.full_name if r.student else None,
        'class_id': r.class_id,
        'date': _iso(r.date),
        'present': r.is_present,
        'recorded_by_id': r.recorded_by_id
    }


def serialize_promotion(p):
    return {
        'id': p.id,
        'student_id': p.student_id,
        'rank': serialize_rank_info(p.rank),
        'degree': p.degree,
        'promoted_on': _iso(p.promoted_on),
        'promoted_by_id': p.promoted_by_id,
        'notes': p.notes
    }


def serialize_eligibility(report):
    return {
        'student_id': report.student.id,
        'name': report.student.name,
        'age': report.age,
        'track': report.track,
        'current_rank': serialize_rank_info(report.current_rank),
        'next_rank': serialize_rank_info(report.next_rank),
        'baseline': _iso(report.baseline),
        'attendance': report.attendance,
        'required': report.required,
        'missing': report.missing,
        'applicable': report.applicable,
        'eligible': report.eligible,
        'days_since_promotion': report.days_since_promotion,
        'min_days': report.min_days,
        'time_ok': report.time_ok,
        'status': report.status
    }


def serialize_action(entry):
    return {
        'id': entry.id,
        'action': entry.action,
        'description': entry.description,
        'user_id': entry.user_id,
        'related_type': entry.related_type,
        'related_id': entry.related_id,
        'created_at': _iso(entry.created_at)
    }
