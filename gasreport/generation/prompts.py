"""
Prompt template for the blood gas analyser simulator.
"""

# Every key the report renders. The example values double as the shape
# the model is asked to reproduce.
EXAMPLE_RECORD = """{
  "patientId": "123456",
  "lastName": "Smith",
  "firstName": "Jane",
  "bloodType": "{sample_type}",
  "temperature": "37.0",
  "fio2": "0.21",
  "r": "0.80",
  "ph": "7.35",
  "pco2": "5.50",
  "po2": "12.00",
  "na": "140",
  "k": "4.1",
  "cl": "100",
  "ca": "1.20",
  "hct": "45",
  "glucose": "5.5",
  "lactate": "1.2",
  "thb": "15.0",
  "o2hb": "98.0",
  "cohb": "1.1",
  "hhb": "1.9",
  "methb": "0.6",
  "be": "0.0",
  "chco3": "24.0",
  "aado2": "15.0",
  "so2": "98.2",
  "chco3st": "25.0",
  "p50": "26.0",
  "cto2": "20.0",
  "interpretation": "Normal Acid-Base Balance"
}"""

DATA_GENERATION_PROMPT = """You are an advanced clinical physiology simulator. Your function is to act as the internal software of a blood gas analysis machine, generating a complete and internally consistent report based on a clinical scenario.
Your output MUST be a valid JSON object and nothing else. Do not use markdown, notes, or any text outside of the JSON structure.

### Core Directive: Pathophysiological Consistency
Every value in the JSON output must be a direct, logical, and quantifiable consequence of the provided clinical scenario. Before outputting the JSON, internally double-check all values against the Governing Physiological Principles.

### Governing Physiological Principles (You MUST adhere to these)

1.  **Acid-Base Balance**: pH, pco2, and chco3 MUST be mathematically consistent (Henderson-Hasselbalch). An acute acidosis will have a lower pH for a given pco2 than a chronic, compensated state.

2.  **Anion Gap (AG)**:
    * Calculate as: AG = (Na⁺ + K⁺) - (Cl⁻ + cHCO₃⁻). Normal is 8-16 mmol/L.
    * Generate a high anion gap (HAGMA) for scenarios like DKA, lactic acidosis, or toxidromes.
    * Generate a normal anion gap (NAGMA) for scenarios like diarrhoea or RTA.

3.  **Delta Ratio (for HAGMA)**:
    * If a HAGMA exists, calculate the Delta Ratio to check for mixed disorders: (Actual AG - 12) / (24 - Actual cHCO₃⁻).
    * The generated values should give a ratio that reflects the scenario: ~1-2 for pure HAGMA, >2 for HAGMA + metabolic alkalosis, <1 for HAGMA + NAGMA.

4.  **Respiratory Compensation Formulas**:
    * **Metabolic Acidosis**: PaCO2 in kPa is approximately 0.2 x cHCO₃⁻ + 1.1.
    * **Metabolic Alkalosis**: For every 1 mmol/L rise in cHCO₃⁻, PaCO2 should rise by ~0.09 kPa.

5.  **Metabolic Compensation Formulas**:
    * **Acute Respiratory Acidosis**: cHCO₃⁻ rises by ~0.2 mmol/L for every 0.13 kPa rise in PaCO2 above 5.3 kPa.
    * **Chronic Respiratory Acidosis**: cHCO₃⁻ rises by ~0.5 mmol/L for every 0.13 kPa rise in PaCO2 above 5.3 kPa.
    * **Acute Respiratory Alkalosis**: cHCO₃⁻ falls by ~0.25 mmol/L for every 0.13 kPa fall in PaCO2 below 5.3 kPa.
    * **Chronic Respiratory Alkalosis**: cHCO₃⁻ falls by ~0.7 mmol/L for every 0.13 kPa fall in PaCO2 below 5.3 kPa.

6.  **Oxygenation & A-a Gradient**:
    * The Alveolar-arterial (A-a) gradient (in kPa) MUST reflect the scenario.
    * Formula: A-a = (FiO₂ * 95) - (PaCO₂ / 0.8) - PaO₂.
    * The A-a gradient MUST be elevated in pneumonia, ARDS, PE, or pulmonary oedema.

### Scenario-Specific Mandates
- **Venous Sample**: If the sample type is "Venous", you MUST generate a low PO2 (4.0-6.0 kPa) and a PCO2 slightly higher than a typical arterial value.

### JSON Structure to Follow
The value for the "bloodType" key must be "{sample_type}". All gas values (pco2, po2, aado2) must be in kPa.
You MUST include every key from the example structure. Do not omit any keys.
{example}"""


def build_prompt(scenario: str, sample_type: str) -> str:
    """Full prompt text for one scenario and sample type."""
    example = EXAMPLE_RECORD.replace("{sample_type}", sample_type)
    rules = (
        DATA_GENERATION_PROMPT
        .replace("{sample_type}", sample_type)
        .replace("{example}", example)
    )
    return f"{rules}\n\nClinical Scenario: {scenario}"
