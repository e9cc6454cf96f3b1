from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import Field, StringField, PasswordField, SelectField, DateField, TextAreaField, IntegerField
from wtforms.validators import DataRequired, Length, InputRequired, Email, Optional, NumberRange, ValidationError
from wtforms.widgets import HiddenInput

from models import ROLES


class ApiForm(FlaskForm):
    """Forms bound to JSON request bodies; session cookies plus role checks guard these routes."""
    class Meta:
        csrf = False

        def wrap_formdata(self, form, formdata):
            formdata = super().wrap_formdata(form, formdata)
            if formdata is None:
                return None
            # JSON null means "not sent"
            return MultiDict([(k, v) for k, v in formdata.items(multi=True) if v is not None])


class JsonValueField(Field):
    """Keeps the JSON value exactly as sent; the caller checks its type."""
    widget = HiddenInput()


class JsonBooleanField(JsonValueField):
    """Only JSON true and false pass; "no", 0 or "N" are errors, not booleans."""

    def __init__(self, label=None, validators=None, default=False, **kwargs):
        super().__init__(label, validators, default=default, **kwargs)

    def pre_validate(self, form):
        if self.raw_data and not isinstance(self.data, bool):
            raise ValidationError('Must be true or false.')


class LoginForm(ApiForm):
    username = StringField('Username', validators=[DataRequired(), Length(max=100)])
    password = PasswordField('Password', validators=[DataRequired()])


class UserForm(ApiForm):
    username = StringField('Username', validators=[InputRequired(), Length(min=3, max=100)])
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])
    first_name = StringField('First Name', validators=[InputRequired(), Length(min=1, max=100)])
    last_name = StringField('Last Name', validators=[InputRequired(), Length(min=1, max=100)])
    role = SelectField('Role', choices=[(r, r) for r in ROLES], validators=[InputRequired()])
    password = PasswordField('Password', validators=[InputRequired(), Length(min=6)])


class RankForm(ApiForm):
    name = StringField('Name', validators=[InputRequired(), Length(min=1, max=100)])
    order = IntegerField('Order', validators=[InputRequired(), NumberRange(min=0)])
    image_url = StringField('Image URL', validators=[Optional(), Length(max=255)])
    min_age = IntegerField('Minimum Age', validators=[Optional(), NumberRange(min=0, max=120)])
    grants_instructor = JsonBooleanField('Grants Instructor')


class RankUpdateForm(RankForm):
    name = StringField('Name', validators=[Optional(), Length(min=1, max=100)])
    order = IntegerField('Order', validators=[Optional(), NumberRange(min=0)])


class RankTransitionForm(ApiForm):
    from_rank_id = IntegerField('From Rank', validators=[InputRequired()])
    to_rank_id = IntegerField('To Rank', validators=[InputRequired()])
    youth_required = IntegerField('Youth Classes', validators=[InputRequired(), NumberRange(min=0)])
    adult_required = IntegerField('Adult Classes', validators=[InputRequired(), NumberRange(min=0)])
    min_days = IntegerField('Minimum Days', validators=[Optional(), NumberRange(min=0)])

    def validate_to_rank_id(self, field):
        if field.data == self.from_rank_id.data:
            raise ValidationError('A transition needs two different ranks.')


class StudentForm(ApiForm):
    first_name = StringField('First Name', validators=[InputRequired(), Length(min=1, max=100)])
    last_name = StringField('Last Name', validators=[InputRequired(), Length(min=1, max=100)])
    birth_date = DateField('Date of Birth', format='%Y-%m-%d', validators=[InputRequired()])
    gender = StringField('Gender', validators=[Optional(), Length(max=20)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])
    account_id = IntegerField('Account', validators=[Optional()])


class StudentUpdateForm(StudentForm):
    first_name = StringField('First Name', validators=[Optional(), Length(min=1, max=100)])
    last_name = StringField('Last Name', validators=[Optional(), Length(min=1, max=100)])
    birth_date = DateField('Date of Birth', format='%Y-%m-%d', validators=[Optional()])


class GuardianForm(ApiForm):
    name = StringField('Name', validators=[InputRequired(), Length(min=1, max=150)])
    relation = StringField('Relation', validators=[InputRequired(), Length(max=50)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])


class GuardianUpdateForm(GuardianForm):
    name = StringField('Name', validators=[Optional(), Length(min=1, max=150)])
    relation = StringField('Relation', validators=[Optional(), Length(max=50)])


class TrainingClassForm(ApiForm):
    name = StringField('Name', validators=[InputRequired(), Length(min=1, max=100)])
    created_on = DateField('Created On', format='%Y-%m-%d', validators=[Optional()])
    min_age = IntegerField('Minimum Age', validators=[InputRequired(), NumberRange(min=0, max=120)])
    max_age = IntegerField('Maximum Age', validators=[InputRequired(), NumberRange(min=0, max=120)])
    total_sessions = IntegerField('Total Sessions', validators=[Optional(), NumberRange(min=0)])
    instructor_id = IntegerField('Instructor', validators=[Optional()])

    def validate_max_age(self, field):
        if self.min_age.data is not None and field.data is not None and field.data < self.min_age.data:
            raise ValidationError('Maximum age must not be lower than minimum age.')


class TrainingClassUpdateForm(TrainingClassForm):
    name = StringField('Name', validators=[Optional(), Length(min=1, max=100)])
    min_age = IntegerField('Minimum Age', validators=[Optional(), NumberRange(min=0, max=120)])
    max_age = IntegerField('Maximum Age', validators=[Optional(), NumberRange(min=0, max=120)])


class EnrollmentForm(ApiForm):
    student_id = IntegerField('Student', validators=[InputRequired()])


class AttendanceMarkForm(ApiForm):
    student_id = IntegerField('Student', validators=[InputRequired()])
    present = JsonBooleanField('Present')


class PromotionForm(ApiForm):
    rank_id = IntegerField('Rank', validators=[InputRequired()])
    # Passed through untouched; the promotion engine rejects anything but an int and exactly true
    degree = JsonValueField('Degree', default=0)
    approved = JsonValueField('Approved by instructor', default=False)
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=1000)])
