from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, pre_load


class AbjadQueryArgsSchema(Schema):
    text = fields.String(required=True, allow_none=False)


class LetterValueSchema(Schema):
    char = fields.String(required=True)
    value = fields.Integer(required=True)


class AbjadLookupResponseSchema(Schema):
    text = fields.String(required=True)
    total = fields.Integer(required=True)
    reducedValue = fields.Integer(required=True)
    wafqSize = fields.Integer(required=True)
    letters = fields.List(fields.Nested(LetterValueSchema))


class AnalysisOptionsSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    deepAnalysis = fields.Boolean(load_default=True)
    numerologyDetails = fields.Boolean(load_default=True)
    contextualInterpretation = fields.Boolean(load_default=True)


class AnalysisRequestSchema(Schema):
    """
    Required-ness of name/mother/question is checked by the analyzer so the
    client gets one message naming every missing field.
    """

    class Meta:
        unknown = EXCLUDE

    name = fields.String(load_default="", allow_none=True)
    mother = fields.String(load_default="", allow_none=True)
    question = fields.String(load_default="", allow_none=True)
    birthDate = fields.String(load_default=None, allow_none=True)
    apiKey = fields.String(load_default=None, allow_none=True, load_only=True)
    options = fields.Nested(AnalysisOptionsSchema, load_default=lambda: {})

    @pre_load
    def accept_mother_name(self, data, **kwargs):
        # Older clients post `motherName`.
        if isinstance(data, dict) and not data.get("mother") and "motherName" in data:
            data = {**data, "mother": data["motherName"]}
        return data


class FieldAnalysisSchema(Schema):
    text = fields.String(required=True)
    total = fields.Integer(required=True)
    reducedValue = fields.Integer(required=True)
    meaning = fields.String(required=True)
    letters = fields.List(fields.Nested(LetterValueSchema))


class BirthAnalysisSchema(Schema):
    birthDate = fields.String(required=True)
    total = fields.Integer(required=True)
    reducedValue = fields.Integer(required=True)
    meaning = fields.String(required=True)


class TraditionalResultsSchema(Schema):
    nameAnalysis = fields.Nested(FieldAnalysisSchema, required=True)
    motherAnalysis = fields.Nested(FieldAnalysisSchema, required=True)
    questionAnalysis = fields.Nested(FieldAnalysisSchema, required=True)
    birthAnalysis = fields.Nested(BirthAnalysisSchema, allow_none=True)
    totalValue = fields.Integer(required=True)
    reducedValue = fields.Integer(required=True)
    wafqSize = fields.Integer(required=True)


class AIAnalysisSchema(Schema):
    available = fields.Boolean(required=True)
    reason = fields.String(allow_none=True)
    analysis = fields.String(required=True)
    spiritualMeaning = fields.String(required=True)
    guidance = fields.String(required=True)
    model = fields.String(allow_none=True)
    usage = fields.Dict(allow_none=True)


class OracleErrorSchema(Schema):
    code = fields.String(required=True)
    message = fields.String(required=True)
    detail = fields.String(allow_none=True)
    retryAfter = fields.Integer(allow_none=True)


class AnalysisDataSchema(Schema):
    traditionalResults = fields.Nested(TraditionalResultsSchema, required=True)
    aiAnalysis = fields.Nested(AIAnalysisSchema, required=True)
    combinedInterpretation = fields.String(allow_none=True)
    oracleError = fields.Nested(OracleErrorSchema, allow_none=True)


class AnalysisResponseSchema(Schema):
    success = fields.Boolean(required=True)
    message = fields.String(required=True)
    timestamp = fields.String(required=True)
    processingTime = fields.String(required=True)
    data = fields.Nested(AnalysisDataSchema, required=True)


class ApiKeyTestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    apiKey = fields.String(load_default=None, allow_none=True)


class KeyInfoSchema(Schema):
    name = fields.String(required=True)
    credits = fields.Float(required=True)
    expiresAt = fields.String(allow_none=True)


class ApiKeyTestResponseSchema(Schema):
    valid = fields.Boolean(required=True)
    success = fields.Boolean(required=True)
    message = fields.String(required=True)
    error = fields.String()
    retryAfter = fields.Integer()
    data = fields.Nested(KeyInfoSchema)
