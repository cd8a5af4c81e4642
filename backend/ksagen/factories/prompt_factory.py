from langchain_core.prompts import (
    ChatPromptTemplate,
    HumanMessagePromptTemplate,
    SystemMessagePromptTemplate,
)

from ..workflows.prompts.system_prompts import *


class PromptFactory:
    def __init__(self):
        pass

    def create_prompt(self, prompt_type: str) -> ChatPromptTemplate:
        prompt = None

        if prompt_type == "Attribute_Writer":
            prompt = ChatPromptTemplate(
                messages=[
                    SystemMessagePromptTemplate.from_template(
                        SystemPrompt + "\n\n" + AttributeWriterSystemPrompt
                    ),
                    HumanMessagePromptTemplate.from_template(
                        AttributeWriterPrompt
                    ),
                ],
                input_variables=[
                    'category',
                    'industry',
                    'size',
                    'stage',
                    'business_model',
                    'tech_stack',
                    'role_title',
                    'role_level',
                    'responsibilities',
                    'technical_skills',
                    'services',
                    'category_guidance',
                    'existing',
                ],
            )
        elif prompt_type == "Question_Writer":
            prompt = ChatPromptTemplate(
                messages=[
                    SystemMessagePromptTemplate.from_template(
                        SystemPrompt + "\n\n" + QuestionWriterSystemPrompt
                    ),
                    HumanMessagePromptTemplate.from_template(
                        QuestionWriterPrompt
                    ),
                ],
                input_variables=[
                    'industry',
                    'size',
                    'stage',
                    'business_model',
                    'tech_stack',
                    'culture_values',
                    'role_title',
                    'role_level',
                    'responsibilities',
                    'technical_skills',
                    'services',
                    'interview_stage',
                    'stage_focus',
                    'attributes',
                    'difficulty_levels',
                    'difficulty_focus',
                    'questions_per_stage',
                    'existing',
                ],
            )

        if prompt is None:
            raise ValueError(f"Unknown prompt type: {prompt_type}")

        return prompt

    def create_system_prompt(self, loop_type: str, instructions: str = "") -> str:
        """System text for a tool-calling loop; the rubric scaffold loop uses loaded instructions."""
        if loop_type == "Company_Research":
            return (SystemPrompt + "\n\n" + CompanyAnalysisPolicyPrompt).strip()
        elif loop_type == "Rubric_Scaffold":
            return (SystemPrompt + "\n\n" + (instructions or KsaOrchestratorFallbackPrompt)).strip()
        raise ValueError(f"Unknown loop type: {loop_type}")
