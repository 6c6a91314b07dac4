"""
Input validation schemas using Marshmallow for API endpoints.
"""
from marshmallow import Schema, fields, validate, validates_schema, ValidationError


class DocumentCreateSchema(Schema):
    """Validation schema for document creation requests."""
    title = fields.Str(
        required=False,
        load_default="",
        validate=validate.Length(max=200),
        error_messages={'invalid': 'Title must be a string'}
    )
    source_ref = fields.Str(
        required=False,
        load_default="",
        validate=validate.Length(max=500),
        error_messages={'invalid': 'Source reference must be a string'}
    )
    raw_text = fields.Str(
        required=False,
        allow_none=True,
        validate=validate.Length(max=100000),
        error_messages={'invalid': 'Raw text must be a string'}
    )
    document_date = fields.Date(
        required=False,
        allow_none=True,
        error_messages={'invalid': 'Document date must be an ISO date (YYYY-MM-DD)'}
    )


class AnalyzeRequestSchema(Schema):
    """Validation schema for document analysis requests."""
    image_base64 = fields.Str(
        required=False,
        allow_none=True,
        error_messages={'invalid': 'Image must be a base64 string'}
    )
    text = fields.Str(
        required=False,
        allow_none=True,
        validate=validate.Length(max=100000),
        error_messages={'invalid': 'Text must be a string'}
    )
    document_kind = fields.Str(
        required=False,
        allow_none=True,
        validate=validate.OneOf(['analysis', 'examination', 'consultation']),
        error_messages={'invalid': 'Document kind must be analysis, examination, or consultation'}
    )

    @validates_schema
    def validate_single_input(self, data, **kwargs):
        """At most one of image_base64 and text may be given."""
        if data.get('image_base64') and data.get('text'):
            raise ValidationError('Provide either image_base64 or text, not both', 'image_base64')


class AssessmentSchema(Schema):
    """Validation schema for manual assessments."""
    value = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=0, max=100),
        error_messages={
            'required': 'Value field is required',
            'invalid': 'Value must be an integer between 0 and 100'
        }
    )


class QuestionnaireSchema(Schema):
    """Validation schema for questionnaire submissions."""
    answers = fields.Dict(
        keys=fields.Str(validate=validate.Length(max=10)),
        values=fields.Str(validate=validate.Length(max=5000)),
        required=True,
        error_messages={
            'required': 'Answers field is required',
            'invalid': 'Answers must be an object of question id to text'
        }
    )
    filled_on = fields.Date(
        required=False,
        allow_none=True,
        error_messages={'invalid': 'Fill date must be an ISO date (YYYY-MM-DD)'}
    )


class SummaryQuerySchema(Schema):
    """Validation schema for article summary query parameters."""
    today = fields.Date(
        required=False,
        allow_none=True,
        error_messages={'invalid': 'Date must be an ISO date (YYYY-MM-DD)'}
    )
    force = fields.Bool(required=False, load_default=False)
